"""
Module: consolidation_engines.translation
Responsibility:
    Translate a member trial balance from its functional currency into the
    group reporting currency, choosing the rate class from each account's
    nature, and post the translation imbalance to the Cumulative
    Translation Adjustment (CTA) account.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    The translator never calls the rate resolver itself: the orchestrator
    asks ``required_rates()`` which (pair, date, class) keys are needed,
    resolves them, and passes the resulting mapping to ``translate()``.

Invariants enforced:
    - Asset and liability lines use the closing rate on the as-of date.
    - Equity lines use the historical rate on the line's historical date,
      falling back to the member's acquisition date.
    - Revenue and expense lines use the period average rate, keyed by the
      as-of date.
    - Each translated line is rounded to the reporting currency minor unit
      (ROUND_HALF_UP); the CTA line is the negated sum of the translated
      lines, so a translated trial balance always sums to exactly zero.
    - Identity translation (functional == reporting) needs no rates, carries
      each balance unrounded and yields a zero CTA.

Failure modes:
    - ExchangeRateUnavailableError naming the pair, date and rate class.
    - HistoricalRateDateMissingError for an equity line with no date.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import replace
from datetime import date
from decimal import Decimal

from consolidation_kernel.domain.accounts import AccountInfo
from consolidation_kernel.domain.currency import CurrencyRegistry
from consolidation_kernel.domain.group import ConsolidationMember
from consolidation_kernel.domain.rates import RateClass, rate_class_for
from consolidation_kernel.domain.trial_balance import MemberTrialBalance, TrialBalanceLine
from consolidation_kernel.domain.values import ExchangeRate, Money
from consolidation_kernel.exceptions import (
    ExchangeRateUnavailableError,
    HistoricalRateDateMissingError,
)
from consolidation_kernel.logging_config import get_logger
from consolidation_engines.elimination_types import IntercompanyTransaction
from consolidation_engines.tracer import traced_engine
from consolidation_engines.types import (
    ConsolidationLine,
    LineSource,
    RateKey,
    TranslatedTrialBalance,
)

logger = get_logger("engines.translation")


class CurrencyTranslator:
    """
    Functional-to-reporting currency translation.

    Contract:
        ``translate()`` receives every rate it needs up front; a missing
        key is a rate-unavailable failure, never a silent zero.

    Non-goals:
        - Does NOT look up rates (the orchestrator owns the resolver call).
        - Does NOT apply ownership weighting (see MinorityInterestAllocator).
    """

    def _rate_key(
        self,
        line: TrialBalanceLine,
        trial_balance: MemberTrialBalance,
        member: ConsolidationMember,
        reporting_currency: str,
        as_of_date: date,
    ) -> RateKey:
        rate_class = rate_class_for(line.account_type)
        match rate_class:
            case RateClass.CLOSING | RateClass.AVERAGE:
                on_date = as_of_date
            case RateClass.HISTORICAL:
                on_date = line.historical_date or member.acquisition_date
                if on_date is None:
                    raise HistoricalRateDateMissingError(
                        str(trial_balance.company_id), str(line.account_id)
                    )
            case _:
                raise ValueError(f"Unknown rate class: {rate_class}")
        return RateKey(
            from_currency=trial_balance.functional_currency,
            to_currency=reporting_currency,
            on_date=on_date,
            rate_class=rate_class,
        )

    def required_rates(
        self,
        trial_balance: MemberTrialBalance,
        member: ConsolidationMember,
        reporting_currency: str,
        as_of_date: date,
    ) -> tuple[RateKey, ...]:
        """Distinct rate keys needed to translate ``trial_balance``, in first-use order."""
        if trial_balance.functional_currency == reporting_currency:
            return ()
        keys: dict[RateKey, None] = {}
        for line in trial_balance.lines:
            keys.setdefault(
                self._rate_key(line, trial_balance, member, reporting_currency, as_of_date)
            )
        return tuple(keys)

    @traced_engine(
        "currency_translation", "1.0",
        fingerprint_fields=("trial_balance", "reporting_currency", "as_of_date", "rates"),
    )
    def translate(
        self,
        trial_balance: MemberTrialBalance,
        member: ConsolidationMember,
        reporting_currency: str,
        as_of_date: date,
        rates: Mapping[RateKey, Decimal],
        cta_account: AccountInfo,
    ) -> TranslatedTrialBalance:
        identity = trial_balance.functional_currency == reporting_currency
        lines: list[ConsolidationLine] = []
        applied: dict[RateKey, Decimal] = {}

        for line in trial_balance.lines:
            if identity:
                amount = line.balance
            else:
                key = self._rate_key(
                    line, trial_balance, member, reporting_currency, as_of_date
                )
                rate = rates.get(key)
                if rate is None:
                    raise ExchangeRateUnavailableError(
                        key.from_currency,
                        key.to_currency,
                        key.on_date,
                        key.rate_class.value,
                        company_id=str(trial_balance.company_id),
                    )
                applied[key] = rate
                converted = ExchangeRate(
                    from_currency=key.from_currency,
                    to_currency=key.to_currency,
                    rate=rate,
                ).convert(Money.of(line.balance, trial_balance.functional_currency))
                amount = converted.round().amount

            lines.append(
                ConsolidationLine(
                    company_id=trial_balance.company_id,
                    account=line.account_info(),
                    amount=amount,
                    source=LineSource.MEMBER,
                    intercompany_partner_id=line.intercompany_partner_id,
                )
            )

        cta = Decimal("0") if identity else -sum((l.amount for l in lines), Decimal("0"))
        if cta != 0:
            lines.append(
                ConsolidationLine(
                    company_id=trial_balance.company_id,
                    account=cta_account,
                    amount=cta,
                    source=LineSource.TRANSLATION_ADJUSTMENT,
                )
            )

        logger.info(
            "translation_completed",
            extra={
                "company_id": str(trial_balance.company_id),
                "functional_currency": trial_balance.functional_currency,
                "reporting_currency": reporting_currency,
                "line_count": len(trial_balance.lines),
                "cta_amount": str(cta),
                "identity": identity,
            },
        )

        return TranslatedTrialBalance(
            company_id=trial_balance.company_id,
            functional_currency=trial_balance.functional_currency,
            reporting_currency=reporting_currency,
            lines=tuple(lines),
            rates_applied=tuple(applied.items()),
            cta_amount=cta,
        )

    # ------------------------------------------------------------------
    # Intercompany transactions
    # ------------------------------------------------------------------

    def transaction_rate_key(
        self,
        transaction: IntercompanyTransaction,
        reporting_currency: str,
        as_of_date: date,
    ) -> RateKey | None:
        """Transactions are flows: average rate for the period, or none if identity."""
        if transaction.currency == reporting_currency:
            return None
        return RateKey(
            from_currency=transaction.currency,
            to_currency=reporting_currency,
            on_date=as_of_date,
            rate_class=RateClass.AVERAGE,
        )

    def translate_transaction(
        self,
        transaction: IntercompanyTransaction,
        reporting_currency: str,
        as_of_date: date,
        rates: Mapping[RateKey, Decimal],
    ) -> IntercompanyTransaction:
        key = self.transaction_rate_key(transaction, reporting_currency, as_of_date)
        if key is None:
            return transaction
        rate = rates.get(key)
        if rate is None:
            raise ExchangeRateUnavailableError(
                key.from_currency, key.to_currency, key.on_date, key.rate_class.value
            )
        amount = CurrencyRegistry.quantize(transaction.amount * rate, reporting_currency)
        variance = (
            CurrencyRegistry.quantize(transaction.variance_amount * rate, reporting_currency)
            if transaction.variance_amount is not None
            else None
        )
        return replace(
            transaction,
            amount=amount,
            currency=reporting_currency,
            variance_amount=variance,
        )
