import os
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel

from .vpnclient.exceptions import ConfigurationError, DeviceNotFoundError, UnsupportedModeError, VPNError
from .vpnclient.manager import VPNClientManager
from .vpnclient.models import AccessMode
from .logging_utility import logger


vpn_manager = VPNClientManager(os.environ.get('VPNGW_CONFIG', 'config/vpn_client_gateway.conf'))


def get_manager() -> VPNClientManager:
    return vpn_manager


@asynccontextmanager
async def lifespan(app: FastAPI):
    vpn_manager.start()
    yield
    await vpn_manager.shutdown()


app = FastAPI(title="VPN Client Gateway", lifespan=lifespan)


class VPNAccessRequest(BaseModel):
    profile_id: str
    mode: str = "dhcp"


def _client(manager: VPNClientManager, profile_id: str):
    try:
        return manager.get_client(profile_id)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.post("/profiles/{profile_id}/setup")
async def setup_profile(profile_id: str, manager: VPNClientManager = Depends(get_manager)):
    """Prepare the OpenVPN profile and credentials"""
    client = _client(manager, profile_id)
    try:
        await client.setup()
        return {"status": "success", "message": f"Profile {profile_id} is ready"}
    except ConfigurationError as e:
        logger.error(f"Error setting up profile {profile_id}: {str(e)}")
        raise HTTPException(status_code=400, detail=str(e))


@app.post("/profiles/{profile_id}/start")
async def start_client(profile_id: str, manager: VPNClientManager = Depends(get_manager)):
    """Start the VPN client and wait until the tunnel is established"""
    client = _client(manager, profile_id)
    try:
        success = await client.start()
    except VPNError as e:
        logger.error(f"Error starting VPN client {profile_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to start VPN client")
    if not success:
        raise HTTPException(status_code=500, detail="Failed to establish VPN tunnel")
    return {"status": "success", "message": f"VPN client {profile_id} established",
            "remote_ip": client.remote_ip}


@app.post("/profiles/{profile_id}/stop")
async def stop_client(profile_id: str, manager: VPNClientManager = Depends(get_manager)):
    client = _client(manager, profile_id)
    try:
        await client.stop()
        return {"status": "success", "message": f"VPN client {profile_id} stopped"}
    except VPNError as e:
        logger.error(f"Error stopping VPN client {profile_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to stop VPN client")


@app.get("/profiles/{profile_id}/status")
async def client_status(profile_id: str, manager: VPNClientManager = Depends(get_manager)):
    client = _client(manager, profile_id)
    return {
        "profile_id": profile_id,
        "active": await client.status(),
        "state": client.state.value,
        "interface": client.interface_name,
        "remote_ip": client.remote_ip,
    }


@app.get("/devices/vpn_access")
async def list_vpn_access(manager: VPNClientManager = Depends(get_manager)):
    return [
        {"mac": device.mac, "mode": device.mode.value, "interface": device.interface,
         "ipv4_addr": device.host.ipv4_addr, "monitored": device.host.monitored}
        for device in manager.list_vpn_access()
    ]


@app.post("/devices/{mac}/vpn_access")
async def enable_vpn_access(mac: str, request: VPNAccessRequest, manager: VPNClientManager = Depends(get_manager)):
    """Route a device through the tunnel of a profile"""
    try:
        AccessMode.parse(request.mode)
    except UnsupportedModeError as e:
        raise HTTPException(status_code=400, detail=str(e))
    try:
        applied = await manager.enable_vpn_access(mac, request.mode, request.profile_id)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DeviceNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except VPNError as e:
        logger.error(f"Error enabling vpn access for {mac}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to enable vpn access")
    return {"status": "success", "mac": mac.lower(), "rule_applied": applied}


@app.delete("/devices/{mac}/vpn_access")
async def disable_vpn_access(mac: str, manager: VPNClientManager = Depends(get_manager)):
    await manager.disable_vpn_access(mac)
    return {"status": "success", "mac": mac.lower()}
