"""Gateway factory for creating remote assistant gateways."""

from sahayak.gateways.base_gateway import AssistantGateway, LiveSession, LiveSessionCallbacks


def create_gateway(gateway_type: str = "gemini") -> AssistantGateway:
    """Factory function to create a gateway instance based on type.

    Args:
        gateway_type: Type of gateway to create ("gemini")

    Returns:
        AssistantGateway instance

    Raises:
        ValueError: If gateway_type is not supported
    """
    gateway_type = gateway_type.lower()

    if gateway_type == "gemini":
        from sahayak.gateways.gemini_gateway import GeminiGateway
        return GeminiGateway()
    else:
        raise ValueError(
            f"Unsupported gateway type: '{gateway_type}'. "
            f"Supported types are: 'gemini'"
        )


__all__ = ["create_gateway", "AssistantGateway", "LiveSession", "LiveSessionCallbacks"]
