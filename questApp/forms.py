from django import forms

from .models import Progress, Reward

# largest value a 32-bit IntegerField column holds
MAX_INTEGER = 2147483647


class AttemptForm(forms.Form):
    """Outcome of one answer submission"""
    status = forms.ChoiceField(choices=Progress.STATUS_CHOICES)
    is_correct = forms.NullBooleanField(required=False)
    user_answer = forms.CharField(strip=True)
    time_spent = forms.IntegerField(min_value=0, max_value=MAX_INTEGER)
    difficulty = forms.IntegerField(min_value=1, max_value=5, required=False)
    notes = forms.CharField(required=False, strip=True)

    def clean_is_correct(self):
        value = self.cleaned_data.get('is_correct')
        if value is None:
            raise forms.ValidationError('is_correct must be true or false.')
        return value


class GoalForm(forms.Form):
    target_mastery = forms.FloatField(min_value=0, max_value=100)
    deadline = forms.DateField(required=False)
    description = forms.CharField(required=False, strip=True)


class ProgressFilterForm(forms.Form):
    subject = forms.CharField(required=False)
    chapter = forms.CharField(required=False)
    status = forms.ChoiceField(choices=[('', 'Any')] + Progress.STATUS_CHOICES, required=False)
    page = forms.IntegerField(min_value=1, required=False)
    limit = forms.IntegerField(min_value=1, max_value=100, required=False)


class RewardFilterForm(forms.Form):
    type = forms.ChoiceField(choices=[('', 'Any')] + Reward.TYPE_CHOICES, required=False)
    claimed = forms.NullBooleanField(required=False)
