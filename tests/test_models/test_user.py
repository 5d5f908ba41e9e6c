from app.core.security import hash_password, verify_password
from app.crud import user as crud_user
from app.models.user import User
from app.schemas.user import BankDetailsUpdate


def test_bank_details_are_stored_encrypted(db, make_user):
    user = make_user("seller")
    crud_user.update_bank_details(db, user, BankDetailsUpdate(
        bank_name="State Bank",
        account_holder_name="Seller One",
        account_number="123456789012",
        ifsc_code="sbin0001234",
    ))

    row = db.get(User, user.id)
    assert "123456789012" not in row.account_number_encrypted
    assert row.account_number == "123456789012"
    assert row.ifsc_code == "SBIN0001234"
    assert row.has_bank_details() is True


def test_bank_view_masks_account_number(make_user):
    user = make_user("seller")
    user.account_number = "99887766"
    view = crud_user.bank_details_view(user)
    assert view["account_number_masked"] == "****7766"
    assert view["has_bank_details"] is False


def test_blank_values_clear_the_column():
    user = User()
    user.account_number = ""
    assert user.account_number_encrypted is None
    assert user.account_number is None


def test_garbage_ciphertext_decrypts_to_none():
    user = User(id=1, account_number_encrypted="not-a-token")
    assert user.account_number is None


def test_password_hashing_round_trip():
    hashed = hash_password("Str0ng!pass")
    assert hashed != "Str0ng!pass"
    assert verify_password("Str0ng!pass", hashed)
    assert not verify_password("wrong", hashed)
