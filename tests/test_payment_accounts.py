import pytest

from core.errors import ValidationError, NotFoundError, AuthorizationError, ConflictError
from core.use_cases.payment_account_use_cases import (
    list_active_accounts,
    list_all_accounts,
    create_account,
    update_account,
    delete_account,
)

BANK = {
    "account_type": "Bank",
    "account_name": "Exchange Desk Ltd",
    "account_number": "0012345",
    "bank_name": "Ziraat",
    "iban": " TR33 0006 1005 1978 6457 8413 26 ",
    "swift_code": "",
}


def test_create_normalises_fields(admin, accounts):
    account = create_account(accounts, admin, BANK)

    assert account.account_type == "bank"
    assert account.iban == "TR33 0006 1005 1978 6457 8413 26"
    assert account.swift_code is None
    assert account.is_active


def test_active_listing_skips_disabled(admin, accounts):
    visible = create_account(accounts, admin, BANK)
    hidden = create_account(accounts, admin, {**BANK, "is_active": False})

    assert [a.id for a in list_active_accounts(accounts)] == [visible.id]
    assert [a.id for a in list_all_accounts(accounts, admin)] == [hidden.id, visible.id]


def test_partial_update(admin, accounts):
    account = create_account(accounts, admin, BANK)

    updated = update_account(accounts, admin, account.id, {"is_active": False, "additional_info": "closed"})

    assert not updated.is_active
    assert updated.additional_info == "closed"
    assert updated.account_name == BANK["account_name"]


@pytest.mark.parametrize("fields, field", [
    ({**BANK, "account_type": "cash"}, "account_type"),
    ({**BANK, "account_name": "  "}, "account_name"),
    ({k: v for k, v in BANK.items() if k != "account_number"}, "account_number"),
])
def test_create_validation(admin, accounts, fields, field):
    with pytest.raises(ValidationError) as exc:
        create_account(accounts, admin, fields)
    assert exc.value.field == field


def test_missing_accounts(admin, accounts):
    with pytest.raises(NotFoundError):
        update_account(accounts, admin, 404, {"account_name": "x"})
    with pytest.raises(NotFoundError):
        delete_account(accounts, admin, 404)


def test_delete(admin, accounts):
    account = create_account(accounts, admin, BANK)
    delete_account(accounts, admin, account.id)
    assert list_all_accounts(accounts, admin) == []


def test_referenced_account_cannot_be_deleted(admin, alice, accounts, engine, create_conversion):
    account = create_account(accounts, admin, BANK)
    tx = create_conversion(alice, payment_account_id=account.id)

    with pytest.raises(ConflictError):
        delete_account(accounts, admin, account.id)

    assert engine.get_transaction(tx.id, alice).payment_account_id == account.id
    assert [a.id for a in list_all_accounts(accounts, admin)] == [account.id]

    retired = update_account(accounts, admin, account.id, {"is_active": False})
    assert not retired.is_active
    assert list_active_accounts(accounts) == []


def test_directory_is_admin_only(alice, accounts):
    with pytest.raises(AuthorizationError):
        create_account(accounts, alice, BANK)
    with pytest.raises(AuthorizationError):
        list_all_accounts(accounts, alice)
