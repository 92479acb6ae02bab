from subnudge.models.subscription import Subscription
from subnudge.models.user import User
from subnudge.services.accounts import encrypt_legacy_account_names, set_account_name
from subnudge.services.crypto import Encrypted, Plaintext, is_encrypted


def _subscription(user, account_name):
    return Subscription(
        user_id=user.id,
        service_name="iCloud",
        renewal_date="2026-11-01",
        cost=2.99,
        payment_method="Apple Pay",
        account_name=account_name,
    )


def test_set_account_name_stores_ciphertext(session, cipher):
    user = User(email="owner@example.com")
    session.add(user)
    session.flush()
    subscription = _subscription(user, "placeholder")

    set_account_name(subscription, "owner@example.com", cipher)

    assert isinstance(subscription.account, Encrypted)
    assert cipher.reveal(subscription.account, user.id) == "owner@example.com"


def test_legacy_rows_are_encrypted_in_place(session, cipher):
    alice = User(email="alice@example.com")
    bob = User(email="bob@example.com")
    session.add_all([alice, bob])
    session.flush()
    legacy = _subscription(alice, "alice@example.com")
    already = _subscription(bob, cipher.encrypt("bob-account", bob.id))
    session.add_all([legacy, already])
    session.commit()
    already_value = already.account_name

    assert isinstance(legacy.account, Plaintext)

    result = encrypt_legacy_account_names(session, cipher)

    assert result == {"migrated": 1, "skipped": 1, "failed": 0}
    session.refresh(legacy)
    session.refresh(already)
    assert is_encrypted(legacy.account_name)
    assert cipher.decrypt(legacy.account_name, alice.id) == "alice@example.com"
    assert already.account_name == already_value


def test_migration_can_be_rerun(session, cipher):
    user = User(email="owner@example.com")
    session.add(user)
    session.flush()
    session.add(_subscription(user, "legacy-name"))
    session.commit()

    encrypt_legacy_account_names(session, cipher)
    second = encrypt_legacy_account_names(session, cipher)

    assert second == {"migrated": 0, "skipped": 1, "failed": 0}
