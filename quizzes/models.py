from django.db import models
from django.conf import settings


class QuizAttempt(models.Model):
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='quiz_attempts')
    user_name = models.CharField(max_length=150, blank=True)
    image_url = models.CharField(max_length=2000)
    questions = models.JSONField(default=list)
    user_answers = models.JSONField(default=list)
    score = models.PositiveIntegerField(default=0)
    total_questions = models.PositiveIntegerField(default=0)
    percentage = models.PositiveIntegerField(default=0)
    time_spent = models.PositiveIntegerField(default=0, help_text="Seconds from quiz generation to submission")
    provider = models.CharField(max_length=50, blank=True)
    quiz_type = models.CharField(max_length=50, default='image-based')
    deleted = models.BooleanField(default=False)
    deleted_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(auto_now_add=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-completed_at", "-id"]

    def __str__(self):
        return f"Attempt {self.id} by {self.user_name} - Score: {self.score}/{self.total_questions}"


class UserProgress(models.Model):
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='quiz_progress')
    total_quizzes = models.PositiveIntegerField(default=0)
    total_score = models.PositiveIntegerField(default=0)
    total_percentage = models.PositiveIntegerField(default=0)
    average_score = models.PositiveIntegerField(default=0)
    best_score = models.PositiveIntegerField(default=0)
    total_time_spent = models.PositiveIntegerField(default=0)
    last_quiz_date = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.user} - {self.total_quizzes} quizzes, avg {self.average_score}%"
