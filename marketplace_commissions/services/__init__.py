from .commission_service import CommissionService

__all__ = ['CommissionService']
