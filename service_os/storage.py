"""
Acesso genérico às tabelas (find / find_one / insert / update / delete).

Todas as falhas do SQLAlchemy viram StorageError e a sessão sofre rollback,
de modo que uma escrita com erro nunca deixa estado parcial.
"""

import logging
from contextlib import contextmanager
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from service_os.database_models import (
    AuthUser, CityHall, Quote, ServiceOrder, ServiceOrderHistory, UserProfile, Workshop,
)
from service_os.exceptions import NotFound, StorageError

logger = logging.getLogger(__name__)

TABLES = {
    "auth_users": AuthUser,
    "user_profiles": UserProfile,
    "city_halls": CityHall,
    "workshops": Workshop,
    "service_orders": ServiceOrder,
    "quotes": Quote,
    "service_order_history": ServiceOrderHistory,
}


def _model(table: str):
    try:
        return TABLES[table]
    except KeyError:
        raise StorageError(f"Tabela desconhecida: {table}") from None


DEPTH_KEY = "storage_depth"


class Storage:
    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def transaction(self):
        """Agrupa várias escritas: commit no final ou rollback de tudo."""
        # A profundidade fica na sessão: serviços diferentes sobre a mesma
        # sessão compartilham a transação externa
        self.db.info[DEPTH_KEY] = self.db.info.get(DEPTH_KEY, 0) + 1
        try:
            yield self
            if self.db.info[DEPTH_KEY] == 1:
                self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Falha de armazenamento; transação desfeita")
            raise StorageError() from e
        except Exception:
            self.db.rollback()
            raise
        finally:
            self.db.info[DEPTH_KEY] -= 1

    def _filters(self, model, filters: dict) -> list:
        clauses = []
        for name, value in filters.items():
            column = getattr(model, name)
            if isinstance(value, (list, tuple, set, frozenset)):
                clauses.append(column.in_(list(value)))
            else:
                clauses.append(column == value)
        return clauses

    def find(self, table: str, order_by: Optional[str] = None, **filters) -> list:
        model = _model(table)
        try:
            query = self.db.query(model).filter(*self._filters(model, filters))
            if order_by:
                # "-campo" ordena de forma decrescente
                column = getattr(model, order_by.lstrip("-"))
                query = query.order_by(column.desc() if order_by.startswith("-") else column)
            return query.all()
        except SQLAlchemyError as e:
            logger.exception("Erro ao consultar %s", table)
            raise StorageError() from e

    def find_one(self, table: str, id: str):
        model = _model(table)
        try:
            return self.db.get(model, id)
        except SQLAlchemyError as e:
            logger.exception("Erro ao buscar %s %s", table, id)
            raise StorageError() from e

    def get(self, table: str, id: str):
        """Como find_one, mas levanta NotFound quando o registro não existe."""
        record = self.find_one(table, id)
        if record is None:
            raise NotFound()
        return record

    def insert(self, table: str, record: dict[str, Any]):
        model = _model(table)
        with self.transaction():
            obj = model(**record)
            self.db.add(obj)
            self.db.flush()
        return obj

    def update(self, table: str, id: str, patch: dict[str, Any], expected: Optional[dict] = None):
        """
        Atualiza o registro. Com 'expected', só grava se os valores atuais
        coincidirem (compare-and-swap) e devolve None caso contrário.
        """
        model = _model(table)
        with self.transaction():
            query = self.db.query(model).filter(model.id == id)
            if expected:
                query = query.filter(*self._filters(model, expected))
            count = query.update(patch, synchronize_session="fetch")
            if count == 0:
                if expected and self.db.get(model, id) is not None:
                    return None
                raise NotFound()
        obj = self.db.get(model, id)
        self.db.refresh(obj)
        return obj

    def delete(self, table: str, id: str) -> None:
        model = _model(table)
        with self.transaction():
            obj = self.db.get(model, id)
            if obj is None:
                raise NotFound()
            self.db.delete(obj)
            self.db.flush()
