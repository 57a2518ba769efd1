from urllib.parse import urlparse
import socket

import catering.infra.supabase_client as supabase_client
from catering.config import SUPABASE_URL
from catering.payments import midtrans_client

CHECKED_TABLES = ["orders", "order_line_items", "children"]

def _check_table(client, name: str):
    try:
        res = client.table(name).select("*").limit(1).execute()
        cnt = len(res.data or [])
        return {"ok": True, "rows": cnt}
    except Exception as e:
        return {"ok": False, "error": str(e)}

def health_supabase_info():
    effective_url = SUPABASE_URL
    parsed = urlparse(effective_url) if effective_url else None
    hostname = parsed.hostname if parsed else None
    dns_ok = None
    dns_error = None
    if hostname:
        try:
            socket.getaddrinfo(hostname, 443)
            dns_ok = True
        except Exception as e:
            dns_ok = False
            dns_error = str(e)

    info = {
        "supabase_url": effective_url,
        "hostname": hostname,
        "dns_ok": dns_ok,
        "dns_error": dns_error,
        "connect_ok": False,
        "error": None,
        "tables": {}
    }
    try:
        client = supabase_client.get_supabase()
        for t in CHECKED_TABLES:
            info["tables"][t] = _check_table(client, t)
        info["connect_ok"] = True
    except Exception as e:
        info["error"] = str(e)
    return info

def health_midtrans_info():
    """Configuration Midtrans visible sans exposer la clé serveur."""
    return {
        "server_key_configured": bool(midtrans_client.MIDTRANS_SERVER_KEY),
        "production": midtrans_client.MIDTRANS_IS_PRODUCTION,
        "snap_url": midtrans_client.snap_url(),
    }
