from django.contrib import admin

from .models import QuizAttempt, UserProgress


@admin.register(QuizAttempt)
class QuizAttemptAdmin(admin.ModelAdmin):
    list_display = ('id', 'user_name', 'score', 'total_questions', 'percentage', 'provider', 'deleted', 'completed_at')
    list_filter = ('provider', 'deleted')
    search_fields = ('user_name', 'image_url')


@admin.register(UserProgress)
class UserProgressAdmin(admin.ModelAdmin):
    list_display = ('user', 'total_quizzes', 'average_score', 'best_score', 'total_time_spent', 'last_quiz_date')
