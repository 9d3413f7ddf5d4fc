import json
import logging

from django.shortcuts import render, redirect
from django.contrib.auth import login, logout
from django.contrib.auth.views import LoginView
from django.http import JsonResponse
from django.urls import reverse
from django.views.decorators.http import require_POST
from firebase_admin import auth as firebase_auth

from .firebase import get_app
from .forms import EmailLoginForm, SignUpForm, unique_username_for
from .models import CustomUser

logger = logging.getLogger(__name__)

MODEL_BACKEND = 'django.contrib.auth.backends.ModelBackend'

TOKEN_ERROR_MESSAGES = {
    "missing": "No sign-in token was provided.",
    "invalid": "Google sign-in failed. Please try again.",
    "expired": "Your Google sign-in expired. Please sign in again.",
    "revoked": "This Google session was revoked. Please sign in again.",
    "no-email": "Your Google account did not share an email address.",
    "unverified": "Verify your email address before signing in.",
}


# -----------------------------
# Signup View
# -----------------------------
def signup_view(request):
    if request.method == 'POST':
        form = SignUpForm(request.POST)
        if form.is_valid():
            user = form.save()
            login(request, user, backend=MODEL_BACKEND)
            logger.info(f"Registered new user {user.email}")
            return redirect('home')
    else:
        form = SignUpForm()

    return render(request, 'signup.html', {'form': form})


# -----------------------------
# Login View
# -----------------------------
class CustomLoginView(LoginView):
    template_name = 'login.html'
    authentication_form = EmailLoginForm
    redirect_authenticated_user = True


# -----------------------------
# Logout View
# -----------------------------
def logout_view(request):
    logout(request)
    return redirect('login')


# -----------------------------
# Google sign-in (ID token exchange)
# -----------------------------
def _token_error(code, status):
    return JsonResponse({"ok": False, "error": code, "message": TOKEN_ERROR_MESSAGES[code]}, status=status)


def _user_for_token(decoded):
    """Find or create the account behind a verified identity token.

    Returns None when the token would link or create an account by an
    email address the identity provider has not verified.
    """
    uid = decoded["uid"]
    email = (decoded.get("email") or "").strip().lower()

    user = CustomUser.objects.filter(firebase_uid=uid).first()
    if user:
        return user

    if decoded.get("email_verified") is not True:
        return None

    user = CustomUser.objects.filter(email__iexact=email).first()
    if user:
        user.firebase_uid = uid
        user.save(update_fields=["firebase_uid"])
        return user

    user = CustomUser(
        email=email,
        username=unique_username_for(email),
        display_name=decoded.get("name", ""),
        firebase_uid=uid,
    )
    user.set_unusable_password()
    user.save()
    logger.info(f"Created account {email} from Google sign-in")
    return user


@require_POST
def google_sign_in(request):
    try:
        payload = json.loads(request.body or b"{}")
    except json.JSONDecodeError:
        payload = {}
    token = payload.get("idToken") if isinstance(payload, dict) else None
    if not token or not isinstance(token, str):
        return _token_error("missing", 400)

    try:
        decoded = firebase_auth.verify_id_token(token, app=get_app())
    except firebase_auth.ExpiredIdTokenError:
        return _token_error("expired", 401)
    except firebase_auth.RevokedIdTokenError:
        return _token_error("revoked", 401)
    except (firebase_auth.InvalidIdTokenError, ValueError) as e:
        logger.warning(f"Rejected Google sign-in token: {e}")
        return _token_error("invalid", 401)

    if not decoded.get("email"):
        return _token_error("no-email", 400)

    user = _user_for_token(decoded)
    if user is None:
        logger.warning(f"Rejected Google sign-in for unverified email {decoded.get('email')}")
        return _token_error("unverified", 401)
    login(request, user, backend=MODEL_BACKEND)
    return JsonResponse({"ok": True, "name": user.name_for_display(), "redirect": reverse("home")})


# -----------------------------
# Home View
# -----------------------------
def home(request):
    return render(request, 'home.html')
