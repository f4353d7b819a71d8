# Automatically load all models so metadata knows them
from app.models.accounting_entry_model import AccountingEntry, AccountingEntryType
from app.models.chart_of_accounts_model import ChartOfAccount
from app.models.journal_entry_model import JournalEntry
from app.models.loan_installment_model import LoanInstallment, InstallmentStatus
from app.models.loan_model import Loan, LoanStatus, LoanType
from app.models.loan_payment_model import LoanPayment, PaymentMethod
from app.models.system_settings_model import SystemSetting
