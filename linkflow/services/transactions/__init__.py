from linkflow.services.transactions.transaction_viewer import TransactionViewer

__all__ = ["TransactionViewer"]
