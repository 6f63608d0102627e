from django.urls import path
from . import views

urlpatterns = [
    # Progress
    path('api/progress/', views.progress_list, name='progress_list'),
    path('api/progress/stats/', views.progress_stats, name='progress_stats'),
    path('api/progress/concepts/', views.progress_concepts, name='progress_concepts'),
    path('api/progress/history/', views.progress_history, name='progress_history'),
    path('api/progress/recommendations/', views.progress_recommendations, name='progress_recommendations'),
    path('api/progress/goals/', views.progress_goals, name='progress_goals'),
    path('api/progress/<int:question_id>/', views.record_attempt_view, name='record_attempt'),

    # Quests
    path('api/quests/', views.quest_list, name='quest_list'),
    path('api/quests/generate/', views.quest_generate, name='quest_generate'),
    path('api/quests/status/', views.quest_status, name='quest_status'),
    path('api/quests/check-completion/', views.quest_check_completion, name='quest_check_completion'),
    path('api/quests/<int:quest_id>/refresh/', views.quest_refresh, name='quest_refresh'),

    # Rewards
    path('api/rewards/', views.reward_list, name='reward_list'),
    path('api/rewards/stats/', views.reward_stats, name='reward_stats'),
    path('api/rewards/<int:reward_id>/claim/', views.reward_claim, name='reward_claim'),

    path('api/profile/', views.profile_view, name='profile'),
]
