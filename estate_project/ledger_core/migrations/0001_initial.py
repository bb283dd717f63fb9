import django.db.models.deletion
import django.utils.timezone
from decimal import Decimal

from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Account",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("number", models.CharField(max_length=20, unique=True)),
                ("name", models.CharField(max_length=200)),
                ("account_type", models.CharField(choices=[("asset", "Asset"), ("liability", "Liability"), ("equity", "Equity"), ("revenue", "Revenue"), ("expense", "Expense")], max_length=10)),
                ("normal_balance", models.CharField(blank=True, choices=[("debit", "Debit"), ("credit", "Credit")], default="", max_length=6)),
                ("category", models.CharField(blank=True, default="", max_length=100)),
                ("description", models.TextField(blank=True, default="")),
                ("balance", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=15)),
                ("is_system_account", models.BooleanField(default=False)),
                ("is_cash_account", models.BooleanField(default=False)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["number"],
                "indexes": [models.Index(fields=["account_type", "is_active"], name="account_type_active_idx")],
            },
        ),
        migrations.CreateModel(
            name="NumberSequence",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("series_key", models.CharField(max_length=50)),
                ("period_key", models.CharField(max_length=20)),
                ("last_number", models.PositiveIntegerField(default=0)),
            ],
            options={
                "constraints": [models.UniqueConstraint(fields=("series_key", "period_key"), name="uq_sequence_series_period")],
            },
        ),
        migrations.CreateModel(
            name="JournalEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("entry_number", models.CharField(max_length=30, unique=True)),
                ("entry_date", models.DateField()),
                ("description", models.TextField()),
                ("reference_type", models.CharField(choices=[("manual", "Manual"), ("bill", "Bill"), ("payment", "Payment"), ("expense", "Expense"), ("expense_payment", "Expense Payment"), ("reversal", "Reversal")], default="manual", max_length=20)),
                ("reference_id", models.BigIntegerField(blank=True, null=True)),
                ("status", models.CharField(choices=[("posted", "Posted"), ("void", "Void")], default="posted", max_length=10)),
                ("total_debit", models.DecimalField(decimal_places=2, max_digits=15)),
                ("total_credit", models.DecimalField(decimal_places=2, max_digits=15)),
                ("notes", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("voided_at", models.DateTimeField(blank=True, null=True)),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("voided_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["entry_date", "entry_number"],
                "indexes": [
                    models.Index(fields=["entry_date", "status"], name="je_date_status_idx"),
                    models.Index(fields=["reference_type", "reference_id"], name="je_reference_idx"),
                ],
                "constraints": [models.CheckConstraint(condition=models.Q(("total_debit", models.F("total_credit"))), name="je_debits_equal_credits")],
            },
        ),
        migrations.CreateModel(
            name="JournalLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("line_type", models.CharField(choices=[("debit", "Debit"), ("credit", "Credit")], max_length=6)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=15)),
                ("description", models.CharField(blank=True, default="", max_length=400)),
                ("account", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="journal_lines", to="ledger_core.account")),
                ("journal", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="lines", to="ledger_core.journalentry")),
            ],
            options={
                "indexes": [models.Index(fields=["account", "line_type"], name="jl_account_type_idx")],
                "constraints": [models.CheckConstraint(condition=models.Q(("amount__gt", 0)), name="jl_amount_positive")],
            },
        ),
        migrations.CreateModel(
            name="Resident",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("unit_number", models.CharField(max_length=50, unique=True)),
                ("full_name", models.CharField(blank=True, default="", max_length=200)),
                ("account_status", models.CharField(choices=[("active", "Active"), ("inactive", "Inactive"), ("suspended", "Suspended")], default="active", max_length=10)),
                ("service_charge", models.DecimalField(blank=True, decimal_places=2, max_digits=15, null=True)),
                ("start_date", models.DateField(blank=True, null=True)),
                ("current_period_end", models.DateField(blank=True, null=True)),
                ("total_balance", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=15)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("user", models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="resident", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["unit_number"],
            },
        ),
        migrations.CreateModel(
            name="Bill",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("invoice_number", models.CharField(max_length=30, unique=True)),
                ("billing_type", models.CharField(default="Estate Maintenance", max_length=100)),
                ("description", models.TextField(blank=True, default="")),
                ("amount", models.DecimalField(decimal_places=2, max_digits=15)),
                ("total_paid", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=15)),
                ("balance", models.DecimalField(decimal_places=2, max_digits=15)),
                ("payment_status", models.CharField(choices=[("unpaid", "Unpaid"), ("partial_payment", "Partial Payment"), ("full_payment", "Full Payment")], default="unpaid", max_length=20)),
                ("status", models.CharField(choices=[("pending", "Pending"), ("partial", "Partially Paid"), ("paid", "Paid"), ("void", "Void"), ("cancelled", "Cancelled")], default="pending", max_length=10)),
                ("period_start", models.DateField()),
                ("period_end", models.DateField()),
                ("due_date", models.DateField()),
                ("voided_at", models.DateTimeField(blank=True, null=True)),
                ("void_reason", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("journal_entry", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="+", to="ledger_core.journalentry")),
                ("resident", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="bills", to="ledger_core.resident")),
            ],
            options={
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(fields=["resident", "status"], name="bill_resident_status_idx"),
                    models.Index(fields=["status", "due_date"], name="bill_status_due_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("balance__gte", 0), ("balance__lte", models.F("amount"))), name="bill_balance_within_amount"),
                    models.CheckConstraint(condition=models.Q(("balance", models.F("amount") - models.F("total_paid"))), name="bill_balance_matches_payments"),
                ],
            },
        ),
        migrations.CreateModel(
            name="BankAccount",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("bank_name", models.CharField(max_length=100)),
                ("account_number", models.CharField(blank=True, default="", max_length=50)),
                ("is_active", models.BooleanField(default=True)),
                ("ledger_account", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="bank_accounts", to="ledger_core.account")),
            ],
            options={
                "constraints": [models.UniqueConstraint(fields=("bank_name", "account_number"), name="uq_bank_account_name_number")],
            },
        ),
        migrations.CreateModel(
            name="BankStatement",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("file_name", models.CharField(blank=True, default="", max_length=255)),
                ("bank_name", models.CharField(max_length=100)),
                ("account_number", models.CharField(blank=True, default="", max_length=50)),
                ("statement_date", models.DateField()),
                ("status", models.CharField(choices=[("pending", "Pending"), ("processing", "Processing"), ("completed", "Completed"), ("error", "Error")], default="pending", max_length=12)),
                ("total_entries", models.PositiveIntegerField(default=0)),
                ("total_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=15)),
                ("reconciled_entries", models.PositiveIntegerField(default=0)),
                ("reconciled_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=15)),
                ("reconciliation_summary", models.JSONField(blank=True, null=True)),
                ("uploaded_at", models.DateTimeField(auto_now_add=True)),
                ("uploaded_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-statement_date", "-id"],
            },
        ),
        migrations.CreateModel(
            name="BankStatementEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("position", models.PositiveIntegerField()),
                ("transaction_date", models.DateField()),
                ("description", models.TextField(blank=True, default="")),
                ("reference_number", models.CharField(blank=True, default="", max_length=100)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=15)),
                ("applied_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=15)),
                ("remaining_amount", models.DecimalField(decimal_places=2, max_digits=15)),
                ("status", models.CharField(choices=[("unmatched", "Unmatched"), ("partially_matched", "Partially Matched"), ("reconciled", "Reconciled")], default="unmatched", max_length=20)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("statement", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="entries", to="ledger_core.bankstatement")),
            ],
            options={
                "ordering": ["statement", "position"],
                "indexes": [
                    models.Index(fields=["reference_number"], name="bse_reference_idx"),
                    models.Index(fields=["status"], name="bse_status_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("remaining_amount", models.F("amount") - models.F("applied_amount"))), name="bse_applied_plus_remaining"),
                    models.UniqueConstraint(fields=("statement", "position"), name="uq_bse_statement_position"),
                ],
            },
        ),
        migrations.CreateModel(
            name="PaymentApplication",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("amount_applied", models.DecimalField(decimal_places=2, max_digits=15)),
                ("application_type", models.CharField(choices=[("manual", "Manual"), ("bank_statement", "Bank Statement")], default="manual", max_length=20)),
                ("payment_date", models.DateField()),
                ("bank_name", models.CharField(blank=True, default="", max_length=100)),
                ("account_number", models.CharField(blank=True, default="", max_length=50)),
                ("notes", models.TextField(blank=True, default="")),
                ("applied_at", models.DateTimeField(auto_now_add=True)),
                ("applied_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("bank_statement_entry", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="applications", to="ledger_core.bankstatemententry")),
                ("bill", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="applications", to="ledger_core.bill")),
                ("journal_entry", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="+", to="ledger_core.journalentry")),
            ],
            options={
                "ordering": ["applied_at", "id"],
                "indexes": [models.Index(fields=["bill", "payment_date"], name="pa_bill_date_idx")],
                "constraints": [models.CheckConstraint(condition=models.Q(("amount_applied__gt", 0)), name="pa_amount_positive")],
            },
        ),
        migrations.CreateModel(
            name="Budget",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("description", models.TextField(blank=True, default="")),
                ("fiscal_year", models.PositiveIntegerField()),
                ("period_type", models.CharField(choices=[("annual", "Annual"), ("quarterly", "Quarterly"), ("monthly", "Monthly")], default="annual", max_length=10)),
                ("start_date", models.DateField()),
                ("end_date", models.DateField()),
                ("status", models.CharField(choices=[("draft", "Draft"), ("active", "Active"), ("closed", "Closed")], default="draft", max_length=10)),
                ("total_budget_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=15)),
                ("total_consumed_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=15)),
                ("total_remaining_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=15)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-fiscal_year", "start_date"],
                "indexes": [models.Index(fields=["status", "start_date", "end_date"], name="budget_status_range_idx")],
            },
        ),
        migrations.CreateModel(
            name="BudgetLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("allocated_amount", models.DecimalField(decimal_places=2, max_digits=15)),
                ("consumed_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=15)),
                ("remaining_amount", models.DecimalField(decimal_places=2, max_digits=15)),
                ("notes", models.TextField(blank=True, default="")),
                ("account", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="budget_lines", to="ledger_core.account")),
                ("budget", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="lines", to="ledger_core.budget")),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(fields=("budget", "account"), name="uq_budget_line_account"),
                    models.CheckConstraint(condition=models.Q(("remaining_amount", models.F("allocated_amount") - models.F("consumed_amount"))), name="bl_remaining_matches_consumed"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Expense",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("description", models.TextField()),
                ("vendor_name", models.CharField(blank=True, default="", max_length=200)),
                ("expense_amount", models.DecimalField(decimal_places=2, max_digits=15)),
                ("service_charge", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=15)),
                ("incurred_on", models.DateField(default=django.utils.timezone.localdate)),
                ("status", models.CharField(choices=[("pending", "Pending"), ("approved", "Approved"), ("rejected", "Rejected")], default="pending", max_length=10)),
                ("reviewed_at", models.DateTimeField(blank=True, null=True)),
                ("rejection_reason", models.TextField(blank=True, default="")),
                ("payment_status", models.CharField(choices=[("unpaid", "Unpaid"), ("paid", "Paid")], default="unpaid", max_length=10)),
                ("paid_date", models.DateField(blank=True, null=True)),
                ("wht_rate", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=5)),
                ("wht_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=15)),
                ("net_payment", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=15)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("account", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="expenses", to="ledger_core.account")),
                ("paid_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("paid_from_account", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="+", to="ledger_core.account")),
                ("payment_journal_entry", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="+", to="ledger_core.journalentry")),
                ("reviewed_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("submitted_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-incurred_on", "-id"],
                "indexes": [models.Index(fields=["status", "payment_status"], name="expense_status_idx")],
            },
        ),
        migrations.CreateModel(
            name="AuditLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action", models.CharField(max_length=50)),
                ("object_type", models.CharField(max_length=100)),
                ("object_id", models.CharField(max_length=100)),
                ("changes", models.JSONField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("user", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(fields=["object_type", "object_id"], name="audit_object_idx"),
                    models.Index(fields=["created_at"], name="audit_created_idx"),
                ],
            },
        ),
    ]
