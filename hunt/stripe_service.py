import stripe

from hunt.config import STRIPE_SECRET_KEY, webhook_secret

stripe.api_key = STRIPE_SECRET_KEY


def create_payment(amount: int, currency: str, idempotency_key: str, metadata: dict):
    return stripe.PaymentIntent.create(
        amount=amount,
        currency=currency,
        automatic_payment_methods={"enabled": True},
        metadata=metadata,
        idempotency_key=idempotency_key
    )


def construct_event(payload: bytes, signature: str):
    return stripe.Webhook.construct_event(
        payload,
        signature,
        webhook_secret()
    )


def retrieve_payment(payment_intent_id: str):
    return stripe.PaymentIntent.retrieve(payment_intent_id)
