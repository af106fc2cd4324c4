"""
モデル定義からLoopBack互換のRESTルートを生成する

無効化されたリモートメソッドのルートは登録しない。
find / findOne / findById と更新のレスポンスからは空のリレーションを取り除く。
"""
import json
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlmodel import Session

from app.exceptions import ModelNotFoundException, RequestException
from app.models import get_session
from app.services.base_model import ServiceContext, remove_empty_relation_properties
from app.services.filters import parse_where
from app.services.registry import ModelDefinition, related_method_name
from app.services.relations import Relation, RelationGraph, RelationKind


def get_service_context(request: Request, session: Session = Depends(get_session)) -> ServiceContext:
    return ServiceContext(request.app.state.registry, session)


async def read_body(request: Request) -> Any:
    """リクエストボディをJSONとして読み込む。空の場合は {}"""
    raw = await request.body()
    if not raw:
        return {}
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise RequestException(f"Request body is not valid JSON: {e}")


async def read_object(request: Request) -> Dict[str, Any]:
    data = await read_body(request)
    if not isinstance(data, dict):
        raise RequestException("Request body must be a JSON object")
    return data


async def read_object_or_array(request: Request) -> Any:
    data = await read_body(request)
    if not isinstance(data, (dict, list)):
        raise RequestException("Request body must be a JSON object or array")
    return data


async def reload(context: ServiceContext, model_name: str, result: Any):
    """保存結果を include 付きで読み直す"""
    service = context.service(model_name)
    if isinstance(result, list):
        items = [await service.find_by_id(instance.id) for instance in result]
    else:
        items = await service.find_by_id(result.id)
    return remove_empty_relation_properties(items, service.get_relation_model_ids())


def build_model_router(definition: ModelDefinition, graph: RelationGraph) -> APIRouter:
    """
    1モデル分のルーターを作る

    Args:
        definition: モデル定義
        graph: リレーショングラフ

    Returns:
        /<plural> をプレフィックスに持つルーター
    """
    router = APIRouter(prefix=f"/{definition.plural}", tags=[definition.name])
    model_name = definition.name
    relation_ids = graph.relation_ids(model_name)
    enabled = definition.is_remote_method_enabled

    def route_name(method: str) -> str:
        return f"{model_name}.{method}"

    if enabled("find"):
        @router.get("", name=route_name("find"))
        async def find(
            filter_: Optional[str] = Query(None, alias="filter"),
            context: ServiceContext = Depends(get_service_context)
        ):
            result = await context.service(model_name).find(filter_)
            return remove_empty_relation_properties(result, relation_ids)

    if enabled("create"):
        @router.post("", name=route_name("create"))
        async def create(request: Request, context: ServiceContext = Depends(get_service_context)):
            data = await read_object_or_array(request)
            result = await context.service(model_name).create(data)
            return await reload(context, model_name, result)

    if enabled("upsert"):
        @router.put("", name=route_name("upsert"))
        async def upsert(request: Request, context: ServiceContext = Depends(get_service_context)):
            data = await read_object(request)
            result = await context.service(model_name).upsert(data)
            return await reload(context, model_name, result)

    if enabled("updateAll"):
        @router.post("/update", name=route_name("updateAll"))
        async def update_all(
            request: Request,
            where: Optional[str] = Query(None),
            context: ServiceContext = Depends(get_service_context)
        ):
            data = await read_object(request)
            count = await context.service(model_name).update_all(parse_where(where), data)
            return {"count": count}

    if enabled("findOne"):
        @router.get("/findOne", name=route_name("findOne"))
        async def find_one(
            filter_: Optional[str] = Query(None, alias="filter"),
            context: ServiceContext = Depends(get_service_context)
        ):
            result = await context.service(model_name).find_one(filter_)
            if result is None:
                raise ModelNotFoundException(model_name, message=f'No "{model_name}" instance matches the filter')
            return remove_empty_relation_properties(result, relation_ids)

    if enabled("count"):
        @router.get("/count", name=route_name("count"))
        async def count(
            where: Optional[str] = Query(None),
            context: ServiceContext = Depends(get_service_context)
        ):
            return {"count": await context.service(model_name).count(parse_where(where))}

    if enabled("findById"):
        @router.get("/{id}", name=route_name("findById"))
        async def find_by_id(
            id: str,
            filter_: Optional[str] = Query(None, alias="filter"),
            context: ServiceContext = Depends(get_service_context)
        ):
            result = await context.service(model_name).find_by_id(id, filter_)
            if result is None:
                raise ModelNotFoundException(model_name, id)
            return remove_empty_relation_properties(result, relation_ids)

    if enabled("exists"):
        @router.get("/{id}/exists", name=route_name("exists"))
        async def exists(id: str, context: ServiceContext = Depends(get_service_context)):
            return {"exists": await context.service(model_name).exists(id)}

    if enabled("updateAttributes"):
        @router.put("/{id}", name=route_name("updateAttributes"))
        async def update_attributes(
            id: str,
            request: Request,
            context: ServiceContext = Depends(get_service_context)
        ):
            data = await read_object(request)
            result = await context.service(model_name).update_attributes(id, data)
            return await reload(context, model_name, result)

    if enabled("deleteById"):
        @router.delete("/{id}", name=route_name("deleteById"))
        async def delete_by_id(id: str, context: ServiceContext = Depends(get_service_context)):
            return {"count": await context.service(model_name).delete_by_id(id)}

    for relation in graph.relations_of(model_name, kinds=list(RelationKind)):
        _add_related_routes(router, definition, graph, relation)

    return router


def _add_related_routes(
    router: APIRouter,
    definition: ModelDefinition,
    graph: RelationGraph,
    relation: Relation
) -> None:
    """関連リソース /<plural>/{id}/<relationId> のルートを追加する"""
    model_name = definition.name
    relation_id = relation.relation_id
    path = f"/{{id}}/{relation_id}"
    target_relation_ids = graph.relation_ids(relation.model)

    def enabled(method: str) -> bool:
        return definition.is_remote_method_enabled(related_method_name(method, relation_id))

    def route_name(method: str) -> str:
        return f"{model_name}.{related_method_name(method, relation_id)}"

    def strip(result):
        return remove_empty_relation_properties(result, target_relation_ids)

    if enabled("get"):
        @router.get(path, name=route_name("get"))
        async def get_related(
            id: str,
            filter_: Optional[str] = Query(None, alias="filter"),
            context: ServiceContext = Depends(get_service_context)
        ):
            return strip(await context.service(model_name).get_related(id, relation_id, filter_))

    if relation.kind == RelationKind.BELONGS_TO:
        return

    if enabled("create"):
        @router.post(path, name=route_name("create"))
        async def create_related(
            id: str,
            request: Request,
            context: ServiceContext = Depends(get_service_context)
        ):
            data = await read_object_or_array(request)
            result = await context.service(model_name).create_related(id, relation_id, data)
            return await reload(context, relation.model, result)

    if relation.kind == RelationKind.HAS_ONE:
        if enabled("update"):
            @router.put(path, name=route_name("update"))
            async def update_related(
                id: str,
                request: Request,
                context: ServiceContext = Depends(get_service_context)
            ):
                data = await read_object(request)
                result = await context.service(model_name).update_related(id, relation_id, data)
                return await reload(context, relation.model, result)

        if enabled("destroy"):
            @router.delete(path, name=route_name("destroy"))
            async def destroy_related(id: str, context: ServiceContext = Depends(get_service_context)):
                return {"count": await context.service(model_name).destroy_related(id, relation_id)}
        return

    if enabled("delete"):
        @router.delete(path, name=route_name("delete"))
        async def delete_related(id: str, context: ServiceContext = Depends(get_service_context)):
            return {"count": await context.service(model_name).destroy_related(id, relation_id)}

    if enabled("count"):
        @router.get(f"{path}/count", name=route_name("count"))
        async def count_related(
            id: str,
            where: Optional[str] = Query(None),
            context: ServiceContext = Depends(get_service_context)
        ):
            return {"count": await context.service(model_name).count_related(id, relation_id, parse_where(where))}

    if enabled("findById"):
        @router.get(f"{path}/{{fk}}", name=route_name("findById"))
        async def find_related_by_id(id: str, fk: str, context: ServiceContext = Depends(get_service_context)):
            return strip(await context.service(model_name).find_related_by_id(id, relation_id, fk))

    if enabled("updateById"):
        @router.put(f"{path}/{{fk}}", name=route_name("updateById"))
        async def update_related_by_id(
            id: str,
            fk: str,
            request: Request,
            context: ServiceContext = Depends(get_service_context)
        ):
            data = await read_object(request)
            result = await context.service(model_name).update_related(id, relation_id, data, fk)
            return await reload(context, relation.model, result)

    if enabled("destroyById"):
        @router.delete(f"{path}/{{fk}}", name=route_name("destroyById"))
        async def destroy_related_by_id(id: str, fk: str, context: ServiceContext = Depends(get_service_context)):
            return {"count": await context.service(model_name).destroy_related(id, relation_id, fk)}
