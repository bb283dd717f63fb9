import logging
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models, transaction
from django.utils import timezone

from ..exceptions import NotFoundError
from ..models import Budget, BudgetLine, BudgetStatus
from .audit_helper import log_action
from .posting import to_amount

logger = logging.getLogger(__name__)


def _locked_budget(budget_id) -> Budget:
    try:
        return Budget.objects.select_for_update().get(pk=budget_id)
    except Budget.DoesNotExist:
        raise NotFoundError(f"Budget {budget_id} not found")


@transaction.atomic
def create_budget(
    *,
    name,
    fiscal_year,
    start_date,
    end_date,
    lines,
    period_type="annual",
    description="",
    created_by=None,
) -> Budget:
    """
    Create a draft budget. `lines` is a list of dicts with
    account, allocated_amount and optional notes; totals follow the lines.
    """
    budget = Budget.objects.create(
        name=name,
        description=description,
        fiscal_year=fiscal_year,
        period_type=period_type,
        start_date=start_date,
        end_date=end_date,
        status=BudgetStatus.DRAFT,
        created_by=created_by,
    )
    total = Decimal("0.00")
    for line in lines:
        allocated = to_amount(line["allocated_amount"])
        BudgetLine.objects.create(
            budget=budget,
            account=line["account"],
            allocated_amount=allocated,
            remaining_amount=allocated,
            notes=line.get("notes", ""),
        )
        total += allocated

    budget.total_budget_amount = total
    budget.total_remaining_amount = total
    budget.save(update_fields=[
        "total_budget_amount", "total_remaining_amount", "updated_at"])

    log_action(action="create", instance=budget, user=created_by,
               changes={"name": name, "total": total})
    return budget


@transaction.atomic
def activate_budget(budget_id, user=None) -> Budget:
    budget = _locked_budget(budget_id)
    budget.transition_to(BudgetStatus.ACTIVE)
    log_action(action="activate", instance=budget, user=user)
    return budget


@transaction.atomic
def close_budget(budget_id, user=None) -> Budget:
    budget = _locked_budget(budget_id)
    budget.transition_to(BudgetStatus.CLOSED)
    log_action(action="close", instance=budget, user=user)
    return budget


def find_budget_for(on_date, today=None):
    """
    Active budget covering on_date, else the one active today.
    None when neither exists.
    """
    budget = Budget.objects.covering(on_date).order_by("start_date").first()
    if budget is not None:
        return budget
    today = today or timezone.localdate()
    if today != on_date:
        budget = Budget.objects.covering(today).order_by("start_date").first()
        if budget is not None:
            logger.warning(
                "No active budget covers %s, charging budget %s active on %s",
                on_date, budget.pk, today,
            )
    return budget


def record_consumption(budget, account, amount):
    """
    Move `amount` from remaining to consumed on the account's line and
    on the budget totals. Returns the line, or None without one.
    """
    if budget.status != BudgetStatus.ACTIVE:
        raise ValidationError("Only active budgets accept consumption")
    with transaction.atomic():
        line = (
            BudgetLine.objects.select_for_update()
            .filter(budget=budget, account=account)
            .first()
        )
        if line is None:
            return None
        # Same delta on the line and on the budget aggregates
        BudgetLine.objects.filter(pk=line.pk).update(
            consumed_amount=models.F("consumed_amount") + amount,
            remaining_amount=models.F("remaining_amount") - amount,
        )
        Budget.objects.filter(pk=budget.pk).update(
            total_consumed_amount=models.F("total_consumed_amount") + amount,
            total_remaining_amount=models.F("total_remaining_amount") - amount,
            updated_at=timezone.now(),
        )
        line.refresh_from_db()
    return line


def track_expense_consumption(expense, today=None):
    """
    Best-effort budget tracking for an approved expense.
    Never blocks approval: misses are logged and None is returned.
    """
    if expense.account_id is None:
        return None

    budget = find_budget_for(expense.incurred_on, today=today)
    if budget is None:
        logger.warning(
            "No active budget found for expense %s (%s), "
            "consumption not tracked",
            expense.pk, expense.incurred_on,
        )
        return None

    line = record_consumption(budget, expense.account, expense.total_amount)
    if line is None:
        logger.warning(
            "Budget %s has no line for account %s, expense %s not tracked",
            budget.pk, expense.account.number, expense.pk,
        )
        return None

    logger.info(
        "Expense %s consumed %s of budget %s line %s (remaining %s)",
        expense.pk, expense.total_amount, budget.pk,
        expense.account.number, line.remaining_amount,
    )
    return line
