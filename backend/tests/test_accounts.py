from decimal import Decimal

import pytest

from crashgame import get_engine
from crashgame.models import Account
from crashgame.services.crash.errors import InsufficientFunds


@pytest.fixture()
def ledger(flask_app):
    return get_engine(flask_app).settlement.accounts


def test_unknown_account_is_created_with_starting_balance(ledger):
    assert ledger.get_balance('carol') == Decimal('1000.00')
    assert Account.query.filter_by(username='carol').count() == 1
    ledger.get_balance('carol')
    assert Account.query.filter_by(username='carol').count() == 1


def test_adjust_balance_persists(ledger):
    assert ledger.adjust_balance('carol', Decimal('-250.50')) == Decimal('749.50')
    assert ledger.adjust_balance('carol', Decimal('100')) == Decimal('849.50')
    assert ledger.get_balance('carol') == Decimal('849.50')


def test_overdraft_raises_and_leaves_balance(ledger):
    ledger.adjust_balance('carol', Decimal('-990.00'))
    with pytest.raises(InsufficientFunds) as info:
        ledger.adjust_balance('carol', Decimal('-10.01'))
    assert info.value.account == 'carol'
    assert ledger.get_balance('carol') == Decimal('10.00')


def test_balance_may_reach_exactly_zero(ledger):
    assert ledger.adjust_balance('carol', Decimal('-1000.00')) == Decimal('0.00')
