from django.urls import path
from . import views

urlpatterns = [
    path('submit/', views.submit_quiz, name='submit_quiz'),
    path('history/', views.history, name='quiz_history'),
    path('history/data/', views.attempts_data, name='quiz_attempts_data'),
    path('attempts/<str:attempt_id>/', views.attempt_detail, name='quiz_attempt'),
    path('attempts/<str:attempt_id>/delete/', views.delete_attempt, name='delete_quiz_attempt'),
    path('progress/', views.progress_view, name='quiz_progress'),
    path('progress/data/', views.progress_data, name='quiz_progress_data'),
    path('progress/pdf/', views.progress_pdf, name='quiz_progress_pdf'),
    path('leaderboard/', views.leaderboard, name='quiz_leaderboard'),
    path('statistics/', views.statistics, name='quiz_statistics'),
]
