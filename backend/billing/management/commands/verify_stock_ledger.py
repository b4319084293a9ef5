from django.core.management.base import BaseCommand, CommandError
from django.db import DEFAULT_DB_ALIAS
from django.db.models import Q, Sum
from django.db.models.functions import Coalesce

from billing.models import Stock, StockHistory


class Command(BaseCommand):
    help = 'Check that every stock row matches the sum of its history entries.'

    def add_arguments(self, parser):
        parser.add_argument('--database', default=DEFAULT_DB_ALIAS)

    def handle(self, *args, **options):
        using = options['database']
        stocks = Stock.objects.using(using).annotate(
            added=Coalesce(Sum('history__cases', filter=Q(history__action=StockHistory.ACTION_ADDED)), 0),
            taken=Coalesce(Sum('history__cases', filter=Q(history__action=StockHistory.ACTION_TAKEN)), 0),
        ).order_by('pk')

        mismatches = 0
        for stock in stocks:
            expected = stock.added - stock.taken
            if expected != stock.current_cases:
                mismatches += 1
                self.stdout.write(
                    self.style.ERROR(
                        f'Stock {stock.id} ({stock.productname}) has {stock.current_cases} cases, '
                        f'history says {expected}'
                    )
                )
            elif options['verbosity'] > 1:
                self.stdout.write(f'Stock {stock.id} ok: {stock.current_cases} cases')

        if mismatches:
            raise CommandError(f'{mismatches} stock rows disagree with their history.')
        self.stdout.write(self.style.SUCCESS('All stock rows match their history.'))
