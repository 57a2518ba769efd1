"""
Clients Supabase par rôle.
- anon: Supabase Auth (résolution du parent derrière un access_token), sondes health
- service: appels serveur sans parent connecté, RLS contournée
- webhook: alias explicite du rôle service pour la notification Midtrans
- user: opérations au nom d'un parent (token JWT), RLS active
"""
from typing import Dict
from supabase import create_client, Client
from catering.config import SUPABASE_URL, SUPABASE_ANON, SUPABASE_SERVICE_KEY

_clients: Dict[str, Client] = {}

def _cached(role: str, key: str, missing: str) -> Client:
    if not SUPABASE_URL or not key:
        raise RuntimeError(f"{missing} manquant(s) pour le client Supabase '{role}'")
    client = _clients.get(role)
    if client is None:
        client = create_client(SUPABASE_URL, key)
        _clients[role] = client
    return client

def get_supabase() -> Client:
    return _cached("anon", SUPABASE_ANON, "SUPABASE_URL/SUPABASE_ANON_KEY")

def get_service_supabase() -> Client:
    return _cached("service", SUPABASE_SERVICE_KEY, "SUPABASE_URL/SUPABASE_SERVICE_KEY")

def get_webhook_supabase() -> Client:
    """
    Client du webhook Midtrans: aucun parent n'est connecté lors de la notification,
    la commande est retrouvée par midtrans_order_id puis mise à jour en service-role.
    """
    return get_service_supabase()

def get_user_supabase(user_token: str) -> Client:
    """
    Client 'anon' authentifié par le token du parent (RLS active).
    Jamais mis en cache: un client par requête, sans polluer l'instance anon partagée.
    """
    if not user_token:
        raise ValueError("user_token is required")
    if not SUPABASE_URL or not SUPABASE_ANON:
        raise RuntimeError("SUPABASE_URL/SUPABASE_ANON_KEY manquant(s) pour le client Supabase 'user'")
    client = create_client(SUPABASE_URL, SUPABASE_ANON)
    client.postgrest.auth(user_token)
    return client
