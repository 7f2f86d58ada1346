"""StockMaster forecast engine"""

__version__ = "1.0.0"
