from fastapi import APIRouter, Response

from covercraft.core import config

router = APIRouter(prefix="/api", tags=["Config"])


@router.get("/config")
def get_public_config(response: Response):
    """Public client configuration for the browser Supabase client."""
    response.headers["Cache-Control"] = "public, max-age=3600"
    return {
        "supabaseUrl": config.SUPABASE_URL,
        "supabaseAnonKey": config.SUPABASE_ANON_KEY,
    }
