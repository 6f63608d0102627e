import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Question',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=200)),
                ('content', models.TextField()),
                ('question_type', models.CharField(choices=[('choice', 'Multiple choice'), ('fill_blank', 'Fill in the blank'), ('calculation', 'Calculation'), ('proof', 'Proof')], default='choice', max_length=16)),
                ('difficulty', models.SmallIntegerField(default=1, validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(5)])),
                ('subject', models.CharField(max_length=100)),
                ('chapter', models.CharField(max_length=100)),
                ('tags', models.JSONField(blank=True, default=list)),
                ('answer', models.TextField(blank=True)),
                ('explanation', models.TextField(blank=True)),
                ('options', models.JSONField(blank=True, default=list)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['subject', 'chapter', 'id'],
                'indexes': [models.Index(fields=['subject', 'chapter'], name='question_subject_chapter_idx')],
            },
        ),
        migrations.CreateModel(
            name='LearnerProfile',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('completed_survey', models.BooleanField(default=False)),
                ('survey_data', models.JSONField(blank=True, default=dict)),
                ('total_experience', models.IntegerField(default=0)),
                ('total_coins', models.IntegerField(default=0)),
                ('completed_quests', models.IntegerField(default=0)),
                ('goal_target_mastery', models.FloatField(default=70.0, validators=[django.core.validators.MinValueValidator(0), django.core.validators.MaxValueValidator(100)])),
                ('goal_deadline', models.DateField(blank=True, null=True)),
                ('goal_description', models.TextField(blank=True)),
                ('goal_set_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='learner_profile', to=settings.AUTH_USER_MODEL)),
            ],
        ),
        migrations.CreateModel(
            name='Progress',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('status', models.CharField(choices=[('completed', 'Completed'), ('skipped', 'Skipped'), ('reviewing', 'Reviewing')], max_length=16)),
                ('is_correct', models.BooleanField(default=False)),
                ('user_answer', models.TextField(blank=True)),
                ('time_spent', models.IntegerField(default=0, validators=[django.core.validators.MinValueValidator(0)])),
                ('attempts', models.IntegerField(default=1)),
                ('last_attempt_at', models.DateTimeField()),
                ('difficulty', models.SmallIntegerField(blank=True, null=True, validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(5)])),
                ('notes', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('question', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='attempt_records', to='questApp.question')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='attempt_records', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-last_attempt_at'],
                'indexes': [models.Index(fields=['user', 'last_attempt_at'], name='progress_user_last_idx')],
                'unique_together': {('user', 'question')},
            },
        ),
        migrations.CreateModel(
            name='Quest',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=200)),
                ('description', models.TextField()),
                ('quest_type', models.CharField(choices=[('main', 'Main'), ('side', 'Side'), ('daily', 'Daily')], default='main', max_length=8)),
                ('is_main_quest', models.BooleanField(default=True)),
                ('difficulty', models.CharField(choices=[('beginner', 'Beginner'), ('intermediate', 'Intermediate'), ('advanced', 'Advanced')], max_length=16)),
                ('subject', models.CharField(max_length=100)),
                ('chapter', models.CharField(max_length=100)),
                ('order', models.IntegerField()),
                ('questions_to_complete', models.IntegerField(default=5, validators=[django.core.validators.MinValueValidator(0)])),
                ('min_accuracy', models.FloatField(default=70.0, validators=[django.core.validators.MinValueValidator(0), django.core.validators.MaxValueValidator(100)])),
                ('time_limit_hours', models.IntegerField(default=24)),
                ('reward_experience', models.IntegerField(default=100, validators=[django.core.validators.MinValueValidator(0)])),
                ('reward_coins', models.IntegerField(default=50, validators=[django.core.validators.MinValueValidator(0)])),
                ('reward_badges', models.JSONField(blank=True, default=list)),
                ('status', models.CharField(choices=[('locked', 'Locked'), ('available', 'Available'), ('in_progress', 'In progress'), ('completed', 'Completed'), ('failed', 'Failed')], default='locked', max_length=16)),
                ('questions_completed', models.IntegerField(default=0)),
                ('current_accuracy', models.FloatField(default=0.0)),
                ('started_at', models.DateTimeField(blank=True, null=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('prerequisites', models.ManyToManyField(blank=True, related_name='dependents', to='questApp.quest')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='quests', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['user', 'order'],
                'indexes': [
                    models.Index(fields=['user', 'status'], name='quest_user_status_idx'),
                    models.Index(fields=['user', 'subject', 'chapter'], name='quest_user_scope_idx'),
                ],
                'unique_together': {('user', 'order')},
            },
        ),
        migrations.CreateModel(
            name='Reward',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('reward_type', models.CharField(choices=[('badge', 'Badge'), ('achievement', 'Achievement'), ('item', 'Item'), ('title', 'Title'), ('experience', 'Experience'), ('coins', 'Coins')], max_length=16)),
                ('name', models.CharField(max_length=200)),
                ('description', models.TextField()),
                ('icon', models.CharField(default='EmojiEvents', max_length=64)),
                ('rarity', models.CharField(choices=[('common', 'Common'), ('rare', 'Rare'), ('epic', 'Epic'), ('legendary', 'Legendary')], default='common', max_length=16)),
                ('value', models.IntegerField(default=0)),
                ('claimed', models.BooleanField(default=False)),
                ('claimed_at', models.DateTimeField(blank=True, null=True)),
                ('source', models.CharField(choices=[('quest_completion', 'Quest completion'), ('achievement', 'Achievement'), ('daily_bonus', 'Daily bonus'), ('special_event', 'Special event')], max_length=32)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('source_progress', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='rewards', to='questApp.progress')),
                ('source_quest', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='rewards', to='questApp.quest')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='rewards', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-created_at', '-id'],
                'indexes': [
                    models.Index(fields=['user', 'claimed'], name='reward_user_claimed_idx'),
                    models.Index(fields=['user', 'reward_type'], name='reward_user_type_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('source_quest__isnull', False)), fields=('source_quest', 'reward_type', 'name'), name='unique_reward_per_quest_component'),
                    models.UniqueConstraint(condition=models.Q(('source', 'special_event')), fields=('user', 'name'), name='unique_special_event_reward'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ProgressionEvent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('event_type', models.CharField(max_length=100)),
                ('event_data', models.JSONField(default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='progression_events', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
    ]
