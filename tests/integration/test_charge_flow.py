"""Integration tests for charge calculation against the SQLite-backed repositories"""

from datetime import timedelta
from decimal import Decimal

from charge_engine.domain import fees
from charge_engine.infrastructure.database.models import ChargeCalculationModel, TransactionModel
from charge_engine.infrastructure.database.repositories import RuleRepository
from charge_engine.schemas import (
    BulkCalculationRequest,
    ChargeTestRequest,
    SimulatedTransaction,
    TransactionPayload,
)
from conftest import BASE_TIME, make_transaction, minutes_after


def payloads(prefix, transaction_type, count, customer_code="CUST001", amount="1000", start=0):
    return [
        TransactionPayload(
            transaction_id=f"{prefix}{i}",
            customer_code=customer_code,
            transaction_type=transaction_type,
            amount=Decimal(amount),
            channel="ONLINE",
            timestamp=minutes_after(BASE_TIME, start + i),
        )
        for i in range(1, count + 1)
    ]


def test_funds_transfer_tiers_over_one_batch(db_calculator, seeded_db):
    """Test 51 transfers in a month are charged 0, 100, 150 and 300 by tier"""
    bulk = db_calculator.calculate_bulk(
        BulkCalculationRequest(transactions=payloads("ft", fees.FUNDS_TRANSFER, 51), batch_id="FT-BATCH")
    )

    totals = [result.total_charges for result in bulk.results]
    assert bulk.successful_calculations == 51
    assert totals[:10] == [Decimal("0")] * 10
    assert totals[10:30] == [Decimal("100.00")] * 20
    assert totals[30:50] == [Decimal("150.00")] * 20
    assert totals[50] == Decimal("300.00")
    assert bulk.total_charges == Decimal("5300.00")
    assert bulk.charges_by_rule == {
        fees.FT_TIER2: Decimal("2000.00"),
        fees.FT_TIER3: Decimal("3000.00"),
        fees.FT_TIER4: Decimal("300.00"),
    }
    assert all(len(result.charges) <= 1 for result in bulk.results)

    assert seeded_db.query(TransactionModel).count() == 51
    assert seeded_db.query(ChargeCalculationModel).count() == 41


def test_funds_transfer_tiers_continue_across_calls(db_calculator):
    """Test saved transfers from earlier calls count toward later ones"""
    for i in range(1, 11):
        result = db_calculator.calculate(
            make_transaction(f"solo{i}", fees.FUNDS_TRANSFER, timestamp=minutes_after(BASE_TIME, i))
        )
        assert result.total_charges == 0

    eleventh = db_calculator.calculate(
        make_transaction("solo11", fees.FUNDS_TRANSFER, timestamp=minutes_after(BASE_TIME, 11))
    )

    assert eleventh.total_charges == Decimal("100.00")
    assert eleventh.charges[0].period_count == 11


def test_transfers_in_previous_month_do_not_count(db_calculator):
    """Test the monthly count restarts in a new calendar month"""
    earlier = payloads("feb", fees.FUNDS_TRANSFER, 12)
    for payload in earlier:
        payload.timestamp = payload.timestamp - timedelta(days=30)
    db_calculator.calculate_bulk(BulkCalculationRequest(transactions=earlier))

    result = db_calculator.calculate(make_transaction("mar1", fees.FUNDS_TRANSFER))

    assert result.total_charges == 0


def test_atm_parent_twenty_first_withdrawal(db_calculator):
    """Test the 21st parent-bank withdrawal of 1000 is charged 20.00"""
    bulk = db_calculator.calculate_bulk(
        BulkCalculationRequest(transactions=payloads("atm", fees.ATM_WITHDRAWAL_PARENT, 21))
    )

    assert [r.total_charges for r in bulk.results[:20]] == [Decimal("0")] * 20
    last = bulk.results[20]
    assert last.total_charges == Decimal("20.00")
    assert last.charges[0].rule_code == fees.ATM_PARENT
    assert "Transaction #21 this month exceeds 20 free transactions" in last.charges[0].calculation_basis


def test_atm_other_sixth_withdrawal(db_calculator):
    """Test the 6th other-bank withdrawal of 2000 is charged 200.00"""
    bulk = db_calculator.calculate_bulk(
        BulkCalculationRequest(transactions=payloads("oth", fees.ATM_WITHDRAWAL_OTHER, 6, amount="2000"))
    )

    assert [r.total_charges for r in bulk.results] == [Decimal("0")] * 5 + [Decimal("200.00")]


def test_statement_prints_always_charged(db_calculator):
    """Test each statement print in a batch is charged 50"""
    bulk = db_calculator.calculate_bulk(
        BulkCalculationRequest(transactions=payloads("stmt", fees.STATEMENT_PRINT, 3, amount="1"))
    )

    assert [r.total_charges for r in bulk.results] == [Decimal("50.00")] * 3
    assert bulk.total_charges == Decimal("150.00")


def test_monthly_savings_charge_once_across_batches(db_calculator):
    """Test a second monthly savings charge in the same month is zero"""
    first = db_calculator.calculate_bulk(
        BulkCalculationRequest(transactions=payloads("msc-a", fees.MONTHLY_SAVINGS_CHARGE, 1, amount="1"))
    )
    second = db_calculator.calculate_bulk(
        BulkCalculationRequest(
            transactions=payloads("msc-b", fees.MONTHLY_SAVINGS_CHARGE, 1, amount="1", start=60 * 24)
        )
    )

    assert first.total_charges == Decimal("25.00")
    assert second.successful_calculations == 1
    assert second.total_charges == 0


def test_corporate_bimonthly_charge(db_calculator, balances):
    """Test 5% of the average balance, charged once within 60 days"""
    first = db_calculator.calculate(
        make_transaction("bmc1", fees.CORPORATE_BIMONTHLY_CHARGE, amount="1", customer_code="CORP001")
    )
    second = db_calculator.calculate(
        make_transaction(
            "bmc2",
            fees.CORPORATE_BIMONTHLY_CHARGE,
            amount="1",
            customer_code="CORP001",
            timestamp=BASE_TIME + timedelta(days=30),
        )
    )

    assert first.total_charges == Decimal("10000.00")
    assert first.charges[0].applied_rate == Decimal("5")
    assert second.success
    assert second.total_charges == 0
    balances.average_balance.assert_called_once()


def test_duplicate_transaction_not_persisted_twice(db_calculator, seeded_db):
    """Test resubmitting an id is rejected with no new rows"""
    first = db_calculator.calculate(make_transaction("dup-1", fees.DUPLICATE_DEBIT_CARD, amount="1"))
    second = db_calculator.calculate(make_transaction("dup-1", fees.DUPLICATE_DEBIT_CARD, amount="1"))

    assert first.total_charges == Decimal("150.00")
    assert not second.success
    assert "already exists" in second.message
    assert seeded_db.query(TransactionModel).count() == 1
    assert seeded_db.query(ChargeCalculationModel).count() == 1


def test_unconfigured_transaction_type_has_no_charges(db_calculator):
    """Test a type no rule conditions on yields no line items"""
    result = db_calculator.calculate(make_transaction("cash1", "CASH_DEPOSIT"))

    assert result.success
    assert result.charges == []
    assert result.summary == "No charges applicable for this transaction"


def test_corporate_customer_skips_retail_rules(db_calculator):
    """Test a corporate ATM withdrawal is never charged by retail ATM rules"""
    bulk = db_calculator.calculate_bulk(
        BulkCalculationRequest(
            transactions=payloads("catm", fees.ATM_WITHDRAWAL_OTHER, 7, customer_code="CORP001", amount="2000")
        )
    )

    assert bulk.total_charges == 0


def test_rule_status_change_visible_immediately(db_calculator, seeded_db):
    """Test deactivating and reactivating a rule affects the next calculation"""
    rules = RuleRepository(seeded_db)

    rules.deactivate(fees.STMT_PRINT)
    seeded_db.commit()
    inactive = db_calculator.calculate(make_transaction("st1", fees.STATEMENT_PRINT, amount="1"))

    rules.reactivate(fees.STMT_PRINT)
    seeded_db.commit()
    active = db_calculator.calculate(make_transaction("st2", fees.STATEMENT_PRINT, amount="1"))

    assert inactive.total_charges == 0
    assert active.total_charges == Decimal("50.00")


def test_bulk_without_saving_leaves_no_rows(db_calculator, seeded_db):
    """Test save_results=False evaluates the batch without persisting it"""
    bulk = db_calculator.calculate_bulk(
        BulkCalculationRequest(transactions=payloads("tmp", fees.FUNDS_TRANSFER, 12), save_results=False)
    )

    assert bulk.results[11].total_charges == Decimal("100.00")
    assert seeded_db.query(TransactionModel).count() == 0


def test_charge_test_run_saved_on_request(db_calculator, seeded_db):
    """Test a charge test persists its simulated transactions only when asked"""
    request = ChargeTestRequest(
        customer_code="CUST002",
        test_description="statement and card",
        test_transactions=[
            SimulatedTransaction(transaction_type=fees.STATEMENT_PRINT, amount=Decimal("1"), channel="BRANCH"),
            SimulatedTransaction(transaction_type=fees.DUPLICATE_CREDIT_CARD, amount=Decimal("1"), channel="BRANCH"),
        ],
        save_results=True,
    )

    result = db_calculator.run_charge_test(request)

    assert result.test_successful
    assert result.customer_name == "Priya Sharma"
    assert result.total_charges == Decimal("500.00")
    assert result.test_summary == (
        "Tested 2 transactions for customer CUST002. 2 transactions incurred charges totaling ₹500.00."
    )
    stored = [row.transaction_id for row in seeded_db.query(TransactionModel).all()]
    assert len(stored) == 2
    assert all(tid.startswith("TEST_CUST002_") for tid in stored)


def test_scenarios_list_seeded_customers(db_calculator):
    """Test sample customers come from the customer directory"""
    scenarios = db_calculator.test_scenarios()

    assert [c["code"] for c in scenarios["sample_customers"]] == ["CORP001", "CORP002", "CUST001", "CUST002", "CUST003"]
