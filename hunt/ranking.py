from hunt.repository import HuntRepository


class RankProvider:
    """Position of a participant among all participants.

    Ordering is more items first, then earlier last scan.
    """

    def rank(self, repo: HuntRepository, participant) -> int:
        raise NotImplementedError


class LiveRankProvider(RankProvider):
    # Counts the participants ahead with one aggregate query per call.
    # Concurrent scans can shift the result.

    def rank(self, repo: HuntRepository, participant) -> int:
        return repo.count_participants_ahead(participant) + 1
