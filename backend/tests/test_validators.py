from decimal import Decimal

import pytest
from pydantic import ValidationError

from onlinebank import schemas
from onlinebank.models import DepositMode, WithdrawalMode


def _messages(exc_info):
    return [e["msg"] for e in exc_info.value.errors()]


def test_deposit_amount_bounds():
    ok = schemas.DepositRequest(to_account_number="ACC001234567890", amount=Decimal("500"), depositor_name="Asha")
    assert ok.deposit_mode == DepositMode.CASH
    with pytest.raises(ValidationError) as exc:
        schemas.DepositRequest(to_account_number="ACC001234567890", amount=0, depositor_name="Asha")
    assert "Value error, Deposit amount must be greater than zero" in _messages(exc)
    with pytest.raises(ValidationError) as exc:
        schemas.DepositRequest(to_account_number="ACC001234567890", amount=1000001, depositor_name="Asha")
    assert "Value error, Deposit amount cannot exceed ₹10,00,000" in _messages(exc)


def test_account_number_rules():
    with pytest.raises(ValidationError) as exc:
        schemas.DepositRequest(to_account_number="ABC12", amount=10, depositor_name="Asha")
    assert "Value error, Account number must be between 8 and 20 characters" in _messages(exc)
    with pytest.raises(ValidationError) as exc:
        schemas.DepositRequest(to_account_number="ACC-0012345", amount=10, depositor_name="Asha")
    assert "Value error, Account number can only contain letters and numbers" in _messages(exc)


def test_transfer_ceiling():
    with pytest.raises(ValidationError) as exc:
        schemas.TransferRequest(from_account_number="ACC00000001", to_account_number="ACC00000002", amount=600000)
    assert "Value error, Transfer amount cannot exceed ₹5,00,000" in _messages(exc)


def test_withdrawal_rules():
    with pytest.raises(ValidationError) as exc:
        schemas.WithdrawalRequest(from_account_number="ACC00000001", amount=250000)
    assert "Value error, Maximum withdrawal limit is ₹2,00,000" in _messages(exc)
    with pytest.raises(ValidationError) as exc:
        schemas.WithdrawalRequest(from_account_number="ACC00000001", amount=100, pin="12a4")
    assert "Value error, PIN must be 4 digits" in _messages(exc)
    with pytest.raises(ValidationError) as exc:
        schemas.WithdrawalRequest(from_account_number="ACC00000001", amount=100, withdrawal_mode=WithdrawalMode.CHEQUE)
    assert "Value error, Cheque number is required for cheque withdrawals" in _messages(exc)


def test_rejection_requires_remarks():
    assert schemas.TransactionApproval(is_approved=True).remarks is None
    with pytest.raises(ValidationError) as exc:
        schemas.TransactionApproval(is_approved=False, remarks="  ")
    assert "Value error, Remarks are required when rejecting a transaction" in _messages(exc)


def test_branch_ifsc_and_phone():
    base = dict(branch_name="Pune", branch_code="pn01", address="FC Road", city="Pune", state="MH",
                ifsc_code="OBSN0000009", phone_number="0201234567", email="pune@onlinebank.com")
    branch = schemas.CreateBranch(**base)
    assert branch.branch_code == "PN01"
    with pytest.raises(ValidationError) as exc:
        schemas.CreateBranch(**{**base, "ifsc_code": "obsn0000009"})
    assert "Value error, Invalid IFSC code format" in _messages(exc)
    with pytest.raises(ValidationError) as exc:
        schemas.CreateBranch(**{**base, "phone_number": "12345"})
    assert "Value error, Phone number must be 10 digits" in _messages(exc)


def test_registration_password_rules():
    base = dict(full_name="Ravi Kumar", email="ravi@example.com", phone_number="9876543210",
                password="Strong@123", confirm_password="Strong@123", date_of_birth="1990-01-01")
    assert schemas.CustomerRegistration(**base).full_name == "Ravi Kumar"
    with pytest.raises(ValidationError) as exc:
        schemas.CustomerRegistration(**{**base, "password": "weakpass1", "confirm_password": "weakpass1"})
    assert any("uppercase letter" in m for m in _messages(exc))
    with pytest.raises(ValidationError) as exc:
        schemas.CustomerRegistration(**{**base, "confirm_password": "Other@123"})
    assert "Value error, Passwords do not match" in _messages(exc)
    with pytest.raises(ValidationError) as exc:
        schemas.CustomerRegistration(**{**base, "phone_number": "5123456789"})
    assert "Value error, Phone number must be a valid 10-digit Indian mobile number" in _messages(exc)


def test_filter_ranges():
    with pytest.raises(ValidationError) as exc:
        schemas.TransactionFilter(min_amount=500, max_amount=100)
    assert "Value error, Minimum amount cannot exceed maximum amount" in _messages(exc)
    with pytest.raises(ValidationError):
        schemas.TransactionFilter(page_size=0)


def test_profile_phone_must_be_mobile():
    assert schemas.ProfileUpdate(phone_number="9876543210").phone_number == "9876543210"
    assert schemas.ProfileUpdate(full_name="Asha Rao").phone_number is None
    with pytest.raises(ValidationError) as exc:
        schemas.ProfileUpdate(phone_number="12345")
    assert "Value error, Phone number must be a valid 10-digit Indian mobile number" in _messages(exc)


def test_password_reset_payload():
    with pytest.raises(ValidationError) as exc:
        schemas.PasswordReset(email="a@example.com", otp_code="12ab56", new_password="New@12345",
                              confirm_password="New@12345")
    assert "Value error, OTP must be 6 digits" in _messages(exc)
    with pytest.raises(ValidationError) as exc:
        schemas.PasswordReset(email="a@example.com", otp_code="123456", new_password="New@12345",
                              confirm_password="Other@123")
    assert "Value error, Passwords do not match" in _messages(exc)
