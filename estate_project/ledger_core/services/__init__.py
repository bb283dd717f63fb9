# Operation-level contract consumed by request handlers
from .accounts import (apply_line, create_account, delete_account,
                       ensure_chart_of_accounts, get_account,
                       get_account_by_number, get_system_accounts,
                       list_accounts, resolve_cash_account, update_account,
                       verify_account_balances)
from .billing import (generate_bill_for_resident,
                      generate_bills_for_all_eligible, void_bill)
from .budget import (activate_budget, close_budget, create_budget,
                     track_expense_consumption)
from .expenses import approve_expense, pay_expense, reject_expense
from .payment import apply_payment_to_bill
from .posting import (LineSpec, post_journal_entry, reverse_journal_entry,
                      void_journal_entry)
from .reconciliation import (StatementEntryInput, StatementMeta,
                             parse_statement_csv, reconcile_entry_to_bill,
                             reconcile_statement)
from .reports import (get_ar_aging, get_balance_sheet,
                      get_budget_performance, get_income_statement,
                      get_trial_balance)
from .sequences import generate_entry_number, generate_invoice_number
