from decimal import Decimal

import pytest

from core.entities.transaction import TransactionKind, TransactionStatus
from core.errors import (
    ValidationError,
    AuthorizationError,
    NotFoundError,
    ConflictError,
    InsufficientFundsError,
)
from core.use_cases.transaction_use_cases import EnginePolicy

PROOF = "/uploads/proof.png"


def test_conversion_snapshots_amounts(alice, create_conversion):
    tx = create_conversion(alice, "100")

    assert tx.kind is TransactionKind.CONVERSION
    assert tx.status is TransactionStatus.PENDING
    assert tx.source_amount == Decimal("100.00")
    assert tx.commission_amount == Decimal("83.24")
    assert tx.target_amount == Decimal("3458.76")
    assert tx.rate == Decimal("35.42")
    assert tx.commission_rate == Decimal("0.0235")
    assert tx.code.startswith("TRX-")


def test_conversion_amounts_are_consistent(alice, create_conversion):
    tx = create_conversion(alice, "257.13")
    gross = tx.source_amount * tx.rate
    assert abs(tx.target_amount + tx.commission_amount - gross) <= Decimal("0.01")


def test_conversion_rejects_target_outside_tolerance(alice, engine):
    with pytest.raises(ValidationError) as exc:
        engine.create_transaction(
            alice, "conversion", "100", "USD", "3500.00", "TRY", "35.42", "0.0235", "83.24",
        )
    assert exc.value.field == "target_amount"


def test_conversion_rejects_wrong_commission(alice, engine):
    with pytest.raises(ValidationError) as exc:
        engine.create_transaction(
            alice, "conversion", "100", "USD", "3458.76", "TRY", "35.42", "0.0235", "10",
        )
    assert exc.value.field == "commission_amount"


def test_conversion_with_stale_rate_is_rejected(alice, engine):
    with pytest.raises(ConflictError):
        engine.create_transaction(
            alice, "conversion", "100", "USD", "3400.00", "TRY", "34.00", "0.0", "0",
        )


def test_conversion_for_unknown_pair(alice, engine):
    with pytest.raises(ValidationError) as exc:
        engine.create_transaction(
            alice, "conversion", "100", "EUR", "3458.76", "TRY", "35.42", "0.0235", "83.24",
        )
    assert exc.value.field == "source_currency"


@pytest.mark.parametrize("amount", ["abc", "0", "-5", "", None, "NaN", "0.001"])
def test_invalid_source_amount(alice, engine, amount):
    with pytest.raises(ValidationError) as exc:
        engine.create_transaction(
            alice, "conversion", amount, "USD", "3458.76", "TRY", "35.42", "0.0235", "83.24",
        )
    assert exc.value.field == "source_amount"


def test_invalid_kind(alice, engine):
    with pytest.raises(ValidationError) as exc:
        engine.create_transaction(
            alice, "refund", "100", "USD", "3458.76", "TRY", "35.42", "0.0235", "83.24",
        )
    assert exc.value.field == "kind"


@pytest.mark.parametrize("amount", ["100000000000000000", "1000000000000.01"])
def test_oversized_amounts_are_rejected(alice, create_conversion, amount):
    with pytest.raises(ValidationError) as exc:
        create_conversion(alice, amount)
    assert exc.value.field == "source_amount"


def test_oversized_withdrawal_is_rejected(make_user, engine):
    user = make_user(balance="50")
    with pytest.raises(ValidationError) as exc:
        engine.request_withdrawal(user, "1e30", "bank", "TR00")
    assert exc.value.field == "source_amount"
    assert engine.list_user_withdrawals(user) == []


def test_oversized_rate_is_rejected(alice, engine):
    with pytest.raises(ValidationError) as exc:
        engine.create_transaction(
            alice, "conversion", "100", "USD", "3458.76", "TRY", "1e30", "0.0235", "83.24",
        )
    assert exc.value.field == "rate"


def test_inactive_payment_account_is_rejected(alice, accounts, create_conversion):
    account = accounts.create({"account_type": "bank", "account_name": "Desk", "account_number": "1", "is_active": False})
    with pytest.raises(ValidationError) as exc:
        create_conversion(alice, payment_account_id=account.id)
    assert exc.value.field == "payment_account_id"


def test_active_payment_account_is_recorded(alice, accounts, create_conversion):
    account = accounts.create({"account_type": "bank", "account_name": "Desk", "account_number": "1", "is_active": True})
    tx = create_conversion(alice, payment_account_id=account.id)
    assert tx.payment_account_id == account.id


def test_attach_proof_moves_pending_to_processing(alice, engine, create_conversion):
    tx = create_conversion(alice)
    updated = engine.attach_payment_proof(tx.id, alice.id, PROOF)
    assert updated.status is TransactionStatus.PROCESSING
    assert updated.payment_screenshot == PROOF


def test_attach_proof_twice_keeps_processing(alice, engine, create_conversion):
    tx = create_conversion(alice)
    engine.attach_payment_proof(tx.id, alice.id, PROOF)
    updated = engine.attach_payment_proof(tx.id, alice.id, "/uploads/second.png")
    assert updated.status is TransactionStatus.PROCESSING
    assert updated.payment_screenshot == "/uploads/second.png"


def test_attach_proof_by_other_user_is_forbidden(alice, bob, engine, create_conversion):
    tx = create_conversion(alice)
    with pytest.raises(AuthorizationError):
        engine.attach_payment_proof(tx.id, bob.id, PROOF)

    unchanged = engine.get_transaction(tx.id, alice)
    assert unchanged.status is TransactionStatus.PENDING
    assert unchanged.payment_screenshot is None


def test_attach_proof_without_file(alice, engine, create_conversion):
    tx = create_conversion(alice)
    with pytest.raises(ValidationError):
        engine.attach_payment_proof(tx.id, alice.id, None)


def test_attach_proof_unknown_transaction(alice, engine):
    with pytest.raises(NotFoundError):
        engine.attach_payment_proof(999, alice.id, PROOF)


def test_attach_proof_to_closed_transaction(alice, admin, engine, create_conversion):
    tx = create_conversion(alice)
    engine.admin_update_status(tx.id, "cancelled", None, admin)
    with pytest.raises(ConflictError):
        engine.attach_payment_proof(tx.id, alice.id, PROOF)


def test_completion_credits_target_amount_once(alice, admin, engine, ledger, create_conversion):
    tx = create_conversion(alice)
    engine.attach_payment_proof(tx.id, alice.id, PROOF)

    completed = engine.admin_update_status(tx.id, "completed", "paid", admin)
    assert completed.status is TransactionStatus.COMPLETED
    assert completed.admin_notes == "paid"
    assert ledger.get(alice.id) == Decimal("3458.76")

    with pytest.raises(ConflictError):
        engine.admin_update_status(tx.id, "completed", None, admin)
    assert ledger.get(alice.id) == Decimal("3458.76")
    assert len(ledger.list_entries(alice.id)) == 1


def test_completion_straight_from_pending(alice, admin, engine, ledger, create_conversion):
    tx = create_conversion(alice, "10")
    engine.admin_update_status(tx.id, "completed", None, admin)
    assert ledger.get(alice.id) == Decimal("345.88")


def test_terminal_status_never_changes(alice, admin, engine, ledger, create_conversion):
    tx = create_conversion(alice)
    engine.admin_update_status(tx.id, "cancelled", "no payment received", admin)

    for status in ("pending", "processing", "completed", "cancelled"):
        with pytest.raises(ConflictError):
            engine.admin_update_status(tx.id, status, None, admin)
    assert engine.get_transaction(tx.id, admin).status is TransactionStatus.CANCELLED
    assert ledger.get(alice.id) == Decimal("0.00")


def test_completed_cannot_be_cancelled(alice, admin, engine, ledger, create_conversion):
    tx = create_conversion(alice)
    engine.admin_update_status(tx.id, "completed", None, admin)
    with pytest.raises(ConflictError):
        engine.admin_update_status(tx.id, "cancelled", None, admin)
    assert ledger.get(alice.id) == Decimal("3458.76")


def test_processing_to_pending_disabled_by_default(alice, admin, engine, create_conversion):
    tx = create_conversion(alice)
    engine.attach_payment_proof(tx.id, alice.id, PROOF)
    with pytest.raises(ConflictError):
        engine.admin_update_status(tx.id, "pending", None, admin)


def test_processing_to_pending_when_enabled(alice, admin, engine, create_conversion):
    engine.policy = EnginePolicy(allow_processing_to_pending=True)
    tx = create_conversion(alice)
    engine.attach_payment_proof(tx.id, alice.id, PROOF)
    reverted = engine.admin_update_status(tx.id, "pending", "blurry screenshot", admin)
    assert reverted.status is TransactionStatus.PENDING


def test_unknown_status_is_rejected(alice, admin, engine, create_conversion):
    tx = create_conversion(alice)
    with pytest.raises(ValidationError) as exc:
        engine.admin_update_status(tx.id, "approved", None, admin)
    assert exc.value.field == "status"


def test_non_admin_cannot_update_status(alice, engine, create_conversion):
    tx = create_conversion(alice)
    with pytest.raises(AuthorizationError):
        engine.admin_update_status(tx.id, "completed", None, alice)
    assert engine.get_transaction(tx.id, alice).status is TransactionStatus.PENDING


def test_update_unknown_transaction(admin, engine):
    with pytest.raises(NotFoundError):
        engine.admin_update_status(12345, "completed", None, admin)


def test_withdrawal_creates_linked_request(make_user, engine, withdrawals):
    user = make_user(balance="500")
    withdrawal, tx = engine.request_withdrawal(user, "200", "bank", "TR00 0000 0000")

    assert tx.kind is TransactionKind.WITHDRAWAL
    assert tx.source_currency == tx.target_currency == "TRY"
    assert tx.source_amount == tx.target_amount == Decimal("200.00")
    assert tx.commission_amount == Decimal("0.00")
    assert withdrawal.transaction_id == tx.id
    assert withdrawal.status is TransactionStatus.PENDING
    assert withdrawal.method == "bank"
    assert withdrawals.get_by_transaction(tx.id).id == withdrawal.id


def test_withdrawal_above_balance_is_rejected_on_request(make_user, engine):
    user = make_user(balance="50")
    with pytest.raises(InsufficientFundsError):
        engine.request_withdrawal(user, "50.01", "bank", "TR00")
    assert engine.list_user_withdrawals(user) == []


def test_withdrawal_requires_method_and_details(make_user, engine):
    user = make_user(balance="50")
    with pytest.raises(ValidationError) as exc:
        engine.request_withdrawal(user, "10", "", "TR00")
    assert exc.value.field == "payment_method"
    with pytest.raises(ValidationError) as exc:
        engine.request_withdrawal(user, "10", "bank", "  ")
    assert exc.value.field == "payment_details"


def test_withdrawal_completion_debits_and_syncs_request(make_user, admin, engine, ledger, withdrawals):
    user = make_user(balance="500")
    withdrawal, tx = engine.request_withdrawal(user, "500", "bank", "TR00")

    engine.admin_update_status(tx.id, "completed", "sent", admin)

    assert ledger.get(user.id) == Decimal("0.00")
    synced = withdrawals.get_by_id(withdrawal.id)
    assert synced.status is TransactionStatus.COMPLETED
    assert synced.admin_notes == "sent"


def test_withdrawal_overdraft_at_completion_rolls_back(make_user, admin, engine, ledger, withdrawals):
    user = make_user(balance="500")
    _, first = engine.request_withdrawal(user, "500", "bank", "TR00")
    second_request, second = engine.request_withdrawal(user, "1", "bank", "TR00")

    engine.admin_update_status(first.id, "completed", None, admin)
    with pytest.raises(InsufficientFundsError):
        engine.admin_update_status(second.id, "completed", None, admin)

    assert ledger.get(user.id) == Decimal("0.00")
    assert engine.get_transaction(second.id, admin).status is TransactionStatus.PENDING
    assert withdrawals.get_by_id(second_request.id).status is TransactionStatus.PENDING


def test_cancelled_withdrawal_leaves_balance(make_user, admin, engine, ledger, withdrawals):
    user = make_user(balance="100")
    withdrawal, tx = engine.request_withdrawal(user, "80", "paypal", "me@example.com")
    engine.admin_update_status(tx.id, "cancelled", None, admin)
    assert ledger.get(user.id) == Decimal("100.00")
    assert withdrawals.get_by_id(withdrawal.id).status is TransactionStatus.CANCELLED


def test_admin_update_withdrawal_goes_through_transaction(make_user, admin, engine, ledger):
    user = make_user(balance="100")
    withdrawal, tx = engine.request_withdrawal(user, "40", "bank", "TR00")

    updated_withdrawal, updated_tx = engine.admin_update_withdrawal(withdrawal.id, "completed", None, admin)

    assert updated_tx.id == tx.id
    assert updated_tx.status is TransactionStatus.COMPLETED
    assert updated_withdrawal.status is TransactionStatus.COMPLETED
    assert ledger.get(user.id) == Decimal("60.00")


def test_admin_update_unknown_withdrawal(admin, engine):
    with pytest.raises(NotFoundError):
        engine.admin_update_withdrawal(77, "completed", None, admin)


def test_proof_is_only_for_conversions(make_user, engine):
    user = make_user(balance="100")
    _, tx = engine.request_withdrawal(user, "40", "bank", "TR00")
    with pytest.raises(ValidationError):
        engine.attach_payment_proof(tx.id, user.id, PROOF)


def test_transaction_visibility(alice, bob, admin, engine, create_conversion):
    tx = create_conversion(alice)
    assert engine.get_transaction(tx.id, admin).id == tx.id
    assert engine.get_transaction_by_code(tx.code.lower(), alice).id == tx.id
    with pytest.raises(AuthorizationError):
        engine.get_transaction(tx.id, bob)
    with pytest.raises(AuthorizationError):
        engine.get_transaction_by_code(tx.code, bob)
    with pytest.raises(NotFoundError):
        engine.get_transaction_by_code("TRX-NOPE", alice)


def test_listings(alice, bob, admin, engine, create_conversion):
    first = create_conversion(alice, "10")
    second = create_conversion(alice, "20")
    other = create_conversion(bob, "30")
    engine.admin_update_status(other.id, "completed", None, admin)
    engine.attach_payment_proof(second.id, alice.id, PROOF)

    assert [t.id for t in engine.list_user_transactions(alice)] == [second.id, first.id]
    assert {t.id for t in engine.list_pending_transactions(admin)} == {first.id, second.id}
    assert len(engine.list_all_transactions(admin)) == 3
    with pytest.raises(AuthorizationError):
        engine.list_all_transactions(alice)
    with pytest.raises(AuthorizationError):
        engine.list_pending_withdrawals(alice)
