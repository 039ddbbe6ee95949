"""
Base service class.
Services contain business logic and talk to the data gateway.
"""

from abc import ABC

from ujenzipro.db.gateway import DataGateway


class BaseService(ABC):
    """Base service class for all gateway-backed services."""

    def __init__(self, gateway: DataGateway):
        self.gateway = gateway
