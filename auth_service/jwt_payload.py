"""
Access-token claim providers.

The exchanger does not know the claim shape; it calls whatever provider it
was constructed with. default_jwt_payload is the stock one.
"""

from typing import Any, Callable, Dict

from auth_service.domain import AuthUser, Client, DeviceInfo

JwtPayloadProvider = Callable[[AuthUser, Client, DeviceInfo], Dict[str, Any]]


def default_jwt_payload(user: AuthUser, client: Client, device_info: DeviceInfo) -> Dict[str, Any]:
    """Identity claims without any federated provider tokens"""
    return {
        "id": user.id,
        "userId": user.id,
        "username": user.username,
        "email": user.email,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "tenantId": user.tenant_id,
        "status": int(user.status) if user.status is not None else None,
        "authClientId": client.id,
        "clientId": client.client_id,
        "deviceInfo": device_info.to_dict(),
    }
