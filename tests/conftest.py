import pytest

from paydash_backend import api_app


SETTLEMENT_CSV = "\n".join([
    "transaction_id,transaction_amount,transaction_fee,interchange_fee,card_scheme_fee,"
    "secure_deposit_amount,customer_country,payment_channel,accepted_at,created_at",
    "t1,100,5,1,1,10,US,Card,2024-01-05T10:00:00Z,2024-01-05T09:59:00Z",
    "t2,50.5,2,0.5,0.5,n/a,US,Apple Pay,2024-01-05T12:00:00Z,n/a",
    "t3,200,4,2,1,,DE,Card,n/a,2024-01-06T08:00:00Z",
    "t4,75,1,1,1,,FR,Google Pay,2024-01-07T23:30:00Z,",
    "t5,999,9,9,9,,US,Card,n/a,n/a",
])

AUTHORIZATION_TSV = "\n".join([
    "transaction_id\ttransaction_state\tcustomer_country\tpayment_channel\tcreated_at",
    "a1\tACCEPTED\tUS\tCard\t2024-01-05T09:00:00Z",
    "a2\tREJECTED\tUS\tCard\t2024-01-05T09:30:00Z",
    "a3\tACCEPTED\tUS\tApple Pay\t2024-01-05T11:00:00Z",
    "a4\tACCEPTED\tDE\tCard\t2024-01-06T07:00:00Z",
    "a5\tDECLINED\tDE\tCard\t2024-01-06T07:10:00Z",
    "a6\tACCEPTED\tFR\tGoogle Pay\t2024-01-07T23:00:00Z",
    "a7\tACCEPTED\tFR\tGoogle Pay\tn/a",
])


@pytest.fixture
def settlement_csv():
    return SETTLEMENT_CSV


@pytest.fixture
def authorization_tsv():
    return AUTHORIZATION_TSV


@pytest.fixture
def settlement_record():
    return {
        "transaction_amount": 100,
        "transaction_fee": 5,
        "interchange_fee": 1,
        "card_scheme_fee": 1,
        "customer_country": "US",
        "payment_channel": "Card",
        "accepted_at": "2024-01-05T10:00:00Z",
        "created_at": None,
    }


@pytest.fixture
def authorization_record():
    return {
        "transaction_state": "ACCEPTED",
        "customer_country": "US",
        "payment_channel": "Card",
        "created_at": "2024-01-05T09:00:00Z",
    }


@pytest.fixture
def clean_api_state(monkeypatch):
    """Give each API test empty report slots and default settings."""
    monkeypatch.setattr(api_app, "_reports", {kind: [] for kind in api_app.REPORT_KINDS})
    monkeypatch.setattr(api_app, "_report_files", {kind: None for kind in api_app.REPORT_KINDS})
    monkeypatch.setattr(api_app, "_settings", api_app.DashboardSettings(
        default_timezone="GMT+0",
        fee_components=["transaction_fee", "interchange_fee", "card_scheme_fee"],
        currency="USD",
    ))
