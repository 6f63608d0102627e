from django.contrib.auth.models import User
from django.core.management.base import BaseCommand, CommandError

from questApp.progression import generate_chain


class Command(BaseCommand):
    help = "Create a learner's quest chain (no-op when one already exists)"

    def add_arguments(self, parser):
        parser.add_argument('username')

    def handle(self, *args, **options):
        try:
            user = User.objects.get(username=options['username'])
        except User.DoesNotExist:
            raise CommandError(f"User '{options['username']}' does not exist")

        quests, created = generate_chain(user)
        if not created:
            self.stdout.write(self.style.WARNING(f'Quest chain already exists ({len(quests)} quests)'))
            return
        for quest in quests:
            self.stdout.write(f'#{quest.order} {quest.title} [{quest.difficulty}, {quest.status}]')
        self.stdout.write(self.style.SUCCESS(f'Created {len(quests)} quests for {user.username}'))
