"""
IBOV Quant Reference Data

Static IBOVESPA universe and the analysis periods offered by the UI.
"""

from __future__ import annotations

from typing import NamedTuple


class StockTicker(NamedTuple):
    symbol: str
    name: str


IBOVESPA_STOCKS: tuple[StockTicker, ...] = (
    StockTicker("PETR4", "Petrobras PN"),
    StockTicker("VALE3", "Vale ON"),
    StockTicker("ITUB4", "Itaú Unibanco PN"),
    StockTicker("BBDC4", "Bradesco PN"),
    StockTicker("BBAS3", "Banco do Brasil ON"),
    StockTicker("ABEV3", "Ambev ON"),
    StockTicker("WEGE3", "Weg ON"),
    StockTicker("RENT3", "Localiza ON"),
    StockTicker("BPAC11", "BTG Pactual UNIT"),
    StockTicker("SUZB3", "Suzano ON"),
    StockTicker("GGBR4", "Gerdau PN"),
    StockTicker("JBSS3", "JBS ON"),
    StockTicker("RAIL3", "Rumo ON"),
    StockTicker("PRIO3", "PetroRio ON"),
    StockTicker("RDOR3", "Rede D'Or ON"),
    StockTicker("CSNA3", "CSN ON"),
    StockTicker("ELET3", "Eletrobras ON"),
    StockTicker("LREN3", "Lojas Renner ON"),
    StockTicker("B3SA3", "B3 ON"),
    StockTicker("VIVT3", "Vivo ON"),
)

PERIODS: tuple[str, ...] = ("1 Mês", "3 Meses", "6 Meses", "1 Ano", "2 Anos")

DEFAULT_PERIOD = PERIODS[2]


def format_watchlist(stocks: tuple[StockTicker, ...] | list[StockTicker] = IBOVESPA_STOCKS) -> str:
    """Render tickers as the watch-list text embedded in scan prompts."""
    return ", ".join(f"{s.symbol} ({s.name})" for s in stocks)


def is_known_symbol(symbol: str) -> bool:
    return symbol.strip().upper() in {s.symbol for s in IBOVESPA_STOCKS}
