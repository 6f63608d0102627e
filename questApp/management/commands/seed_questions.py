from django.core.management.base import BaseCommand, CommandError

from questApp.models import Question
from questApp.progression.seeds import SeedLoader, SeedVersionError


class Command(BaseCommand):
    help = 'Seed the sample calculus question bank'

    def add_arguments(self, parser):
        parser.add_argument('--pack', default='questions.json', help='Seed pack under questApp/content/')

    def handle(self, *args, **options):
        try:
            pack = SeedLoader().load_pack(options['pack'])
        except SeedVersionError as exc:
            raise CommandError(str(exc)) from exc

        created_count = 0
        for item in pack.payload:
            question, created = Question.objects.get_or_create(
                subject=item['subject'],
                chapter=item['chapter'],
                title=item['title'],
                defaults={
                    'content': item['content'],
                    'question_type': item.get('question_type', 'choice'),
                    'difficulty': item.get('difficulty', 1),
                    'tags': item.get('tags', []),
                    'answer': item.get('answer', ''),
                    'explanation': item.get('explanation', ''),
                    'options': item.get('options', []),
                }
            )
            if created:
                created_count += 1
                self.stdout.write(self.style.SUCCESS(f'Created question "{question.title}"'))

        self.stdout.write(
            self.style.SUCCESS(f'Question bank seeded from {pack.name} {pack.version}: {created_count} new')
        )
