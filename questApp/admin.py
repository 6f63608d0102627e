from django.contrib import admin
from .models import (
    LearnerProfile, Question, Progress, Quest, Reward, ProgressionEvent
)


@admin.register(LearnerProfile)
class LearnerProfileAdmin(admin.ModelAdmin):
    list_display = ['user', 'total_experience', 'total_coins', 'completed_quests', 'completed_survey']
    list_filter = ['completed_survey']
    search_fields = ['user__username', 'user__email']
    # stats are owned by the reward ledger
    readonly_fields = ['total_experience', 'total_coins', 'completed_quests', 'created_at', 'updated_at']


@admin.register(Question)
class QuestionAdmin(admin.ModelAdmin):
    list_display = ['title', 'subject', 'chapter', 'question_type', 'difficulty']
    list_filter = ['subject', 'chapter', 'question_type', 'difficulty']
    search_fields = ['title', 'content']


@admin.register(Progress)
class ProgressAdmin(admin.ModelAdmin):
    list_display = ['user', 'question', 'status', 'is_correct', 'attempts', 'last_attempt_at']
    list_filter = ['status', 'is_correct', 'last_attempt_at']
    search_fields = ['user__username', 'question__title']
    readonly_fields = ['attempts', 'created_at']


@admin.register(Quest)
class QuestAdmin(admin.ModelAdmin):
    list_display = ['user', 'order', 'title', 'status', 'questions_completed', 'current_accuracy']
    list_filter = ['status', 'quest_type', 'difficulty']
    search_fields = ['user__username', 'title']
    ordering = ['user', 'order']
    filter_horizontal = ['prerequisites']
    readonly_fields = ['rewards_granted_at', 'created_at', 'updated_at']


@admin.register(Reward)
class RewardAdmin(admin.ModelAdmin):
    list_display = ['user', 'reward_type', 'name', 'value', 'rarity', 'claimed', 'created_at']
    list_filter = ['reward_type', 'rarity', 'claimed', 'source']
    search_fields = ['user__username', 'name']
    readonly_fields = ['created_at']


@admin.register(ProgressionEvent)
class ProgressionEventAdmin(admin.ModelAdmin):
    list_display = ['event_type', 'user', 'created_at']
    list_filter = ['event_type', 'created_at']
    search_fields = ['user__username', 'event_type']
    readonly_fields = ['created_at']
