"""
Base Repository - Interface comum para todos os repositories.

Cada entidade tem duas implementacoes:
- Supabase (producao): tabelas campaigns, message_records, customers
- Memoria (desenvolvimento e testes): ver memory.py

A escolha acontece em deps.py conforme STORAGE_BACKEND.
"""
import logging
from abc import ABC
from typing import Any, Callable, List

from campaign_engine.core.exceptions import DatabaseError

logger = logging.getLogger(__name__)

# PostgREST limita o numero de linhas por resposta
PAGE_SIZE = 1000


class BaseRepository(ABC):
    """
    Base para repositories baseados em Supabase.

    Attributes:
        db: Cliente de banco de dados (Supabase, Mock, etc.)
        table_name: Nome da tabela no banco de dados
    """

    table_name: str = ""

    def __init__(self, db_client: Any):
        """
        Inicializa o repository.

        Args:
            db_client: Cliente de banco de dados (Supabase, Mock, etc.)
        """
        self.db = db_client

    def _table(self):
        return self.db.table(self.table_name)

    def _execute(self, query, operacao: str):
        """
        Executa query convertendo falhas em DatabaseError.

        Args:
            query: Query builder do supabase-py
            operacao: Descricao para log/mensagem de erro
        """
        try:
            return query.execute()
        except Exception as e:
            logger.error(f"Erro ao {operacao} ({self.table_name}): {e}")
            raise DatabaseError(
                f"Erro ao {operacao}",
                details={"table": self.table_name},
                original_error=e,
            )

    def _fetch_all(self, build_query: Callable[[], Any], operacao: str) -> List[dict]:
        """
        Busca todas as linhas paginando de PAGE_SIZE em PAGE_SIZE.

        Args:
            build_query: Funcao que monta uma query nova a cada pagina
            operacao: Descricao para log
        """
        rows: List[dict] = []
        offset = 0
        while True:
            response = self._execute(
                build_query().range(offset, offset + PAGE_SIZE - 1), operacao
            )
            page = response.data or []
            rows.extend(page)
            if len(page) < PAGE_SIZE:
                return rows
            offset += PAGE_SIZE
