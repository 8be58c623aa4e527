from abc import ABC, abstractmethod

class BaseLoader(ABC):
    @abstractmethod
    def load(self, file_path: str, account_id: str):
        """
        Yield Transaction instances from file_path, all booked against account_id.
        Rows that cannot be parsed are skipped.
        """
        pass
