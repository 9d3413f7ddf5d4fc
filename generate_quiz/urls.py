from django.urls import path
from . import views

urlpatterns = [
    path("", views.generate_view, name="generate_quiz"),
    path("reset/", views.reset_view, name="reset_quiz"),
    path("play/", views.play_view, name="play_quiz"),
    path("providers/", views.providers_status, name="providers_status"),
]
