# catering.config
from pathlib import Path
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=True)

"""
Configuration centrale du backend cantine.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets/URLs (Supabase, Midtrans)
- Sécurité cookies, CORS/hosts
- Fuseau horaire de l'école (dates de commande / de livraison)
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _env_flag(name: str, default: str = "false") -> bool:
    return _clean_env(os.getenv(name, default)).lower() in ("1", "true", "yes")

# Supabase: URL et clés (anon/service)
# - SUPABASE_URL peut parfois être sans schéma: on préfixe en https:// si nécessaire
SUPABASE_URL = _clean_env(os.getenv("SUPABASE_URL") or os.getenv("VITE_SUPABASE_URL") or "")
SUPABASE_ANON = _clean_env(os.getenv("SUPABASE_ANON_KEY") or os.getenv("SUPABASE_KEY") or "")
SUPABASE_SERVICE_KEY = _clean_env(os.getenv("SUPABASE_SERVICE_KEY") or os.getenv("SUPABASE_SERVICE_ROLE_KEY") or "")

if SUPABASE_URL and not SUPABASE_URL.startswith("http"):
    SUPABASE_URL = "https://" + SUPABASE_URL
if SUPABASE_URL.endswith("/"):
    SUPABASE_URL = SUPABASE_URL.rstrip("/")

# Midtrans: la clé serveur ne quitte jamais le backend (appels Snap + signature webhook)
MIDTRANS_SERVER_KEY = _clean_env(os.getenv("MIDTRANS_SERVER_KEY") or "")
MIDTRANS_CLIENT_KEY = _clean_env(os.getenv("MIDTRANS_CLIENT_KEY") or "")
MIDTRANS_IS_PRODUCTION = _env_flag("MIDTRANS_IS_PRODUCTION")
MIDTRANS_TIMEOUT = float(_clean_env(os.getenv("MIDTRANS_TIMEOUT")) or 15)

# Fuseau de l'école: sert à dater order_date et à refuser une livraison dans le passé
SCHOOL_TIMEZONE = _clean_env(os.getenv("SCHOOL_TIMEZONE") or "Asia/Jakarta")

# Cookies / CORS / hosts
COOKIE_SECURE = _env_flag("COOKIE_SECURE")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",") if h.strip()]

# Valeurs de repli envoyées à Midtrans quand le profil parent est incomplet
DEFAULT_CUSTOMER_NAME = "Customer"
DEFAULT_CUSTOMER_EMAIL = "parent@example.com"
DEFAULT_CUSTOMER_PHONE = "08123456789"
