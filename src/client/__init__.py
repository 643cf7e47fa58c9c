from client.client import DataSourceClient, DataSourceClientError

__all__ = ["DataSourceClient", "DataSourceClientError"]
