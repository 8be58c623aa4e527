from abc import ABC, abstractmethod


class BaseStore(ABC):
    """Load/upsert/delete over accounts, transactions and templates."""

    @abstractmethod
    def load_accounts(self):
        """Return all Account records."""

    @abstractmethod
    def load_transactions(self):
        """Return all Transaction records, newest first."""

    @abstractmethod
    def load_templates(self):
        """Return all TransactionTemplate records."""

    @abstractmethod
    def upsert_account(self, account):
        pass

    @abstractmethod
    def upsert_transactions(self, transactions):
        """Insert or replace transactions by id."""

    def upsert_transaction(self, transaction):
        self.upsert_transactions([transaction])

    @abstractmethod
    def upsert_template(self, template):
        pass

    @abstractmethod
    def delete_account(self, account_id):
        """Delete an account together with its transactions."""

    @abstractmethod
    def delete_transaction(self, transaction_id):
        pass

    @abstractmethod
    def delete_template(self, template_id):
        pass
