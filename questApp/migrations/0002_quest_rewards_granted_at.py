from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('questApp', '0001_initial'),
    ]

    operations = [
        migrations.AddField(
            model_name='quest',
            name='rewards_granted_at',
            field=models.DateTimeField(blank=True, null=True),
        ),
    ]
