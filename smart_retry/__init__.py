"""Smart Retry: collections retry decisions for delinquent loans."""
