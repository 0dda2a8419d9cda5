from src.templates.infrastructure.adapters.provider_gateway import HttpTemplateProviderGateway

__all__ = ["HttpTemplateProviderGateway"]
