from decimal import Decimal

from sqlalchemy.exc import IntegrityError

from crashgame import db
from crashgame.models import Account
from crashgame.services.crash.errors import InsufficientFunds
from crashgame.services.crash.rounds import to_money


class AccountLedger:
    """Account balances stored in the ``crash_account`` table.

    Every call opens its own app context so it can be used from Socket.IO
    handlers, HTTP routes and scheduler background tasks alike. Unknown
    accounts are created on first use with ``starting_balance``.
    """

    def __init__(self, app, starting_balance=Decimal('1000.00')):
        self.app = app
        self.starting_balance = to_money(starting_balance)

    def _get_or_create(self, username: str, lock: bool = False) -> Account:
        query = Account.query.filter_by(username=username)
        if lock:
            query = query.with_for_update()
        account = query.first()
        if account:
            return account
        try:
            account = Account(username=username, balance=self.starting_balance)
            db.session.add(account)
            db.session.commit()
        except IntegrityError:
            # Lost a create race with another connection.
            db.session.rollback()
            account = Account.query.filter_by(username=username).first()
        if lock:
            account = Account.query.filter_by(username=username).with_for_update().first()
        return account

    def get_or_create(self, username: str) -> dict:
        with self.app.app_context():
            return self._get_or_create(username).to_dict()

    def get_balance(self, username: str) -> Decimal:
        with self.app.app_context():
            return to_money(self._get_or_create(username).balance)

    def adjust_balance(self, username: str, delta) -> Decimal:
        delta = to_money(delta)
        with self.app.app_context():
            account = self._get_or_create(username, lock=True)
            new_balance = to_money(account.balance) + delta
            if new_balance < 0:
                db.session.rollback()
                raise InsufficientFunds(username, to_money(account.balance), delta)
            account.balance = new_balance
            db.session.add(account)
            db.session.commit()
            return new_balance
