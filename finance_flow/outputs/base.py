from abc import ABC, abstractmethod

class BaseOutput(ABC):
    @abstractmethod
    def write(self, transactions, accounts=None, templates=None):
        """Write the given records to the chosen sink and return its path."""
        pass
