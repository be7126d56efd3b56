"""
Test configuration and fixtures for the SEMTAS test suite.
Provides database setup, an HTTP client and seed-data helpers.
"""

import os

os.environ.setdefault("DB_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_FILE", "")
os.environ.setdefault("RUN_MIGRATIONS", "false")

from datetime import date
from decimal import Decimal
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from semtas.main import app
from semtas.db.base import Base
from semtas.db import models, event_models  # noqa: F401
from semtas.db.session import get_db
from semtas.db.models import (
    Concessao, Pagamento, Solicitacao, StatusConcessao, StatusPagamento, StatusSolicitacao, TipoConcessao,
)

# Test database URL
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Valid CPFs (check digits verified)
CPF_VALIDO = "52998224725"
CPF_VALIDO_2 = "11144477735"

test_engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
    echo=False
)

TestSessionLocal = async_sessionmaker(
    autoflush=False,
    bind=test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with database session override."""

    async def override_get_db():
        try:
            yield db_session
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


class TestDataFactory:
    """Factory class for creating test data."""

    _seq = 0

    @classmethod
    def _next(cls) -> int:
        cls._seq += 1
        return cls._seq

    @classmethod
    async def create_solicitacao(
        cls,
        session: AsyncSession,
        status: StatusSolicitacao = StatusSolicitacao.EM_ANALISE,
        prioridade: int = 3,
        cpf: str = CPF_VALIDO,
    ) -> Solicitacao:
        solicitacao = Solicitacao(
            protocolo=f"SOL-TEST-{cls._next():05d}",
            beneficiario_nome="Maria da Silva",
            beneficiario_cpf=cpf,
            prioridade=prioridade,
            determinacao_judicial_flag=False,
            status=status,
        )
        session.add(solicitacao)
        await session.flush()
        return solicitacao

    @classmethod
    async def create_concessao(
        cls,
        session: AsyncSession,
        status: StatusConcessao = StatusConcessao.APTO,
        solicitacao: Optional[Solicitacao] = None,
        data_inicio: Optional[date] = None,
    ) -> Concessao:
        solicitacao = solicitacao or await cls.create_solicitacao(session, StatusSolicitacao.APROVADA)
        concessao = Concessao(
            solicitacao_id=solicitacao.id,
            tipo=TipoConcessao.ORIGINAL,
            status=status,
            ordem_prioridade=solicitacao.prioridade,
            determinacao_judicial_flag=False,
            data_inicio=data_inicio,
        )
        session.add(concessao)
        await session.flush()
        return concessao

    @staticmethod
    async def create_pagamento(
        session: AsyncSession,
        concessao: Concessao,
        numero_parcela: int = 1,
        total_parcelas: int = 1,
        status: StatusPagamento = StatusPagamento.PENDENTE,
        valor: Decimal = Decimal("150.50"),
        data_vencimento: Optional[date] = None,
    ) -> Pagamento:
        pagamento = Pagamento(
            concessao_id=concessao.id,
            solicitacao_id=concessao.solicitacao_id,
            valor=valor,
            status=status,
            numero_parcela=numero_parcela,
            total_parcelas=total_parcelas,
            data_vencimento=data_vencimento,
        )
        session.add(pagamento)
        await session.flush()
        return pagamento


@pytest.fixture
def test_factory():
    """Provide access to test data factory."""
    return TestDataFactory
