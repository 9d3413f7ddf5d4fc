from django.conf import settings


def firebase_web_config(request):
    config = settings.FIREBASE_WEB_CONFIG
    return {
        "firebase_web_config": config,
        "google_sign_in_enabled": bool(config.get("apiKey")),
    }
