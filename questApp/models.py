from django.conf import settings
from django.db import models
from django.contrib.auth.models import User
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db.models import Q


class LearnerProfile(models.Model):
    """Learner aggregate stats plus the opaque survey answers"""
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='learner_profile')

    # Survey intake is owned elsewhere; stored as-is for chain generation
    completed_survey = models.BooleanField(default=False)
    survey_data = models.JSONField(default=dict, blank=True)

    # Aggregate stats (mutated only by the reward ledger)
    total_experience = models.IntegerField(default=0)
    total_coins = models.IntegerField(default=0)
    completed_quests = models.IntegerField(default=0)

    # Learning goal
    goal_target_mastery = models.FloatField(
        default=70.0,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
    )
    goal_deadline = models.DateField(null=True, blank=True)
    goal_description = models.TextField(blank=True)
    goal_set_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.user.username}'s Profile"

    @property
    def level(self) -> int:
        step = max(int(getattr(settings, 'QUEST_LEVEL_EXPERIENCE', 500)), 1)
        return 1 + max(self.total_experience, 0) // step


class Question(models.Model):
    """Question bank reference data (read-only to the progression engine)"""
    TYPE_CHOICES = [
        ('choice', 'Multiple choice'),
        ('fill_blank', 'Fill in the blank'),
        ('calculation', 'Calculation'),
        ('proof', 'Proof'),
    ]

    title = models.CharField(max_length=200)
    content = models.TextField()
    question_type = models.CharField(max_length=16, choices=TYPE_CHOICES, default='choice')
    difficulty = models.SmallIntegerField(
        default=1,
        validators=[MinValueValidator(1), MaxValueValidator(5)],
    )
    subject = models.CharField(max_length=100)
    chapter = models.CharField(max_length=100)
    tags = models.JSONField(default=list, blank=True)  # concept tags
    answer = models.TextField(blank=True)
    explanation = models.TextField(blank=True)
    options = models.JSONField(default=list, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['subject', 'chapter', 'id']
        indexes = [
            models.Index(fields=['subject', 'chapter'], name='question_subject_chapter_idx'),
        ]

    def __str__(self):
        return f"{self.subject} / {self.chapter} - {self.title}"


class Progress(models.Model):
    """Attempt record: one row per (learner, question)"""
    STATUS_COMPLETED = 'completed'
    STATUS_SKIPPED = 'skipped'
    STATUS_REVIEWING = 'reviewing'
    STATUS_CHOICES = [
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_SKIPPED, 'Skipped'),
        (STATUS_REVIEWING, 'Reviewing'),
    ]

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='attempt_records')
    question = models.ForeignKey(Question, on_delete=models.CASCADE, related_name='attempt_records')
    status = models.CharField(max_length=16, choices=STATUS_CHOICES)
    is_correct = models.BooleanField(default=False)
    user_answer = models.TextField(blank=True)
    time_spent = models.IntegerField(default=0, validators=[MinValueValidator(0)])  # seconds
    attempts = models.IntegerField(default=1)
    last_attempt_at = models.DateTimeField()
    difficulty = models.SmallIntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(1), MaxValueValidator(5)],
    )
    notes = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = ['user', 'question']
        ordering = ['-last_attempt_at']
        indexes = [
            models.Index(fields=['user', 'last_attempt_at'], name='progress_user_last_idx'),
        ]

    def __str__(self):
        return f"{self.user.username} - Q{self.question_id} ({self.status}, x{self.attempts})"


class Quest(models.Model):
    """One stage in a learner's ordered quest chain"""
    STATUS_LOCKED = 'locked'
    STATUS_AVAILABLE = 'available'
    STATUS_IN_PROGRESS = 'in_progress'
    STATUS_COMPLETED = 'completed'
    STATUS_FAILED = 'failed'
    STATUS_CHOICES = [
        (STATUS_LOCKED, 'Locked'),
        (STATUS_AVAILABLE, 'Available'),
        (STATUS_IN_PROGRESS, 'In progress'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_FAILED, 'Failed'),
    ]
    TYPE_CHOICES = [
        ('main', 'Main'),
        ('side', 'Side'),
        ('daily', 'Daily'),
    ]
    DIFFICULTY_CHOICES = [
        ('beginner', 'Beginner'),
        ('intermediate', 'Intermediate'),
        ('advanced', 'Advanced'),
    ]

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='quests')
    title = models.CharField(max_length=200)
    description = models.TextField()
    quest_type = models.CharField(max_length=8, choices=TYPE_CHOICES, default='main')
    is_main_quest = models.BooleanField(default=True)
    difficulty = models.CharField(max_length=16, choices=DIFFICULTY_CHOICES)
    subject = models.CharField(max_length=100)
    chapter = models.CharField(max_length=100)
    order = models.IntegerField()

    # Requirements
    questions_to_complete = models.IntegerField(default=5, validators=[MinValueValidator(0)])
    min_accuracy = models.FloatField(
        default=70.0,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
    )
    time_limit_hours = models.IntegerField(default=24)  # hint only, never enforced

    # Reward schedule
    reward_experience = models.IntegerField(default=100, validators=[MinValueValidator(0)])
    reward_coins = models.IntegerField(default=50, validators=[MinValueValidator(0)])
    reward_badges = models.JSONField(default=list, blank=True)

    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_LOCKED)

    # Progress snapshot
    questions_completed = models.IntegerField(default=0)
    current_accuracy = models.FloatField(default=0.0)
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    # set once, by the reward ledger, when the quest's schedule is granted
    rewards_granted_at = models.DateTimeField(null=True, blank=True)

    prerequisites = models.ManyToManyField(
        'self',
        symmetrical=False,
        related_name='dependents',
        blank=True,
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = ['user', 'order']
        ordering = ['user', 'order']
        indexes = [
            models.Index(fields=['user', 'status'], name='quest_user_status_idx'),
            models.Index(fields=['user', 'subject', 'chapter'], name='quest_user_scope_idx'),
        ]

    def __str__(self):
        return f"{self.user.username} - #{self.order} {self.title} ({self.status})"

    @property
    def requirements_met(self) -> bool:
        return (
            self.questions_completed >= self.questions_to_complete
            and self.current_accuracy >= self.min_accuracy
        )


class Reward(models.Model):
    """Immutable ledger entry; `claimed` is the only learner-driven change"""
    TYPE_BADGE = 'badge'
    TYPE_ACHIEVEMENT = 'achievement'
    TYPE_ITEM = 'item'
    TYPE_TITLE = 'title'
    TYPE_EXPERIENCE = 'experience'
    TYPE_COINS = 'coins'
    TYPE_CHOICES = [
        (TYPE_BADGE, 'Badge'),
        (TYPE_ACHIEVEMENT, 'Achievement'),
        (TYPE_ITEM, 'Item'),
        (TYPE_TITLE, 'Title'),
        (TYPE_EXPERIENCE, 'Experience'),
        (TYPE_COINS, 'Coins'),
    ]
    NUMERIC_TYPES = (TYPE_EXPERIENCE, TYPE_COINS)

    RARITY_CHOICES = [
        ('common', 'Common'),
        ('rare', 'Rare'),
        ('epic', 'Epic'),
        ('legendary', 'Legendary'),
    ]

    SOURCE_QUEST_COMPLETION = 'quest_completion'
    SOURCE_ACHIEVEMENT = 'achievement'
    SOURCE_DAILY_BONUS = 'daily_bonus'
    SOURCE_SPECIAL_EVENT = 'special_event'
    SOURCE_CHOICES = [
        (SOURCE_QUEST_COMPLETION, 'Quest completion'),
        (SOURCE_ACHIEVEMENT, 'Achievement'),
        (SOURCE_DAILY_BONUS, 'Daily bonus'),
        (SOURCE_SPECIAL_EVENT, 'Special event'),
    ]

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='rewards')
    reward_type = models.CharField(max_length=16, choices=TYPE_CHOICES)
    name = models.CharField(max_length=200)
    description = models.TextField()
    icon = models.CharField(max_length=64, default='EmojiEvents')
    rarity = models.CharField(max_length=16, choices=RARITY_CHOICES, default='common')
    value = models.IntegerField(default=0)

    claimed = models.BooleanField(default=False)
    claimed_at = models.DateTimeField(null=True, blank=True)

    source = models.CharField(max_length=32, choices=SOURCE_CHOICES)
    source_quest = models.ForeignKey(
        Quest,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='rewards',
    )
    source_progress = models.ForeignKey(
        Progress,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='rewards',
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['user', 'claimed'], name='reward_user_claimed_idx'),
            models.Index(fields=['user', 'reward_type'], name='reward_user_type_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['source_quest', 'reward_type', 'name'],
                condition=Q(source_quest__isnull=False),
                name='unique_reward_per_quest_component',
            ),
            models.UniqueConstraint(
                fields=['user', 'name'],
                condition=Q(source='special_event'),
                name='unique_special_event_reward',
            ),
        ]

    def __str__(self):
        return f"{self.user.username} - {self.reward_type}: {self.name}"


class ProgressionEvent(models.Model):
    """Append-only audit trail of progression side effects"""
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='progression_events')
    event_type = models.CharField(max_length=100)  # quest_started, quest_completed, quest_unlocked, ...
    event_data = models.JSONField(default=dict)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.event_type} - {self.created_at}"
