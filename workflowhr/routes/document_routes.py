import logging
from flask import Blueprint, request, jsonify
from workflowhr.auth import roles_required, HR_STAFF_ROLES
from workflowhr.database import SessionLocal, DocumentTemplate, GeneratedDocument, User, Company
from workflowhr.serializers import iso
from workflowhr.services.document_service import DocumentService
from workflowhr.tenancy import company_query, get_company_record, current_company_id
from workflowhr.validators import validate_required_fields, sanitize_input

logger = logging.getLogger(__name__)

document_bp = Blueprint('documents', __name__, url_prefix='/api/documents')


def _serialize_template(t):
    return {
        "id": t.id,
        "document_name": t.document_name,
        "description": t.description,
        "template_type": t.template_type,
        "field_tags": t.field_tags,
        "content": t.content,
        "is_active": t.is_active,
        "created_by": t.created_by,
        "created_at": iso(t.created_at),
        "updated_at": iso(t.updated_at),
    }


def _serialize_generated(d, include_content=True):
    data = {
        "id": d.id,
        "template_id": d.template_id,
        "employee_id": d.employee_id,
        "document_name": d.document_name,
        "field_values": d.field_values,
        "generated_by": d.generated_by,
        "created_at": iso(d.created_at),
    }
    if include_content:
        data["content"] = d.content
    return data


def _active_template(db, template_id):
    return company_query(db, DocumentTemplate).filter(
        DocumentTemplate.id == template_id,
        DocumentTemplate.is_active.is_(True)
    ).first()


# ============================================================
# TEMPLATES
# ============================================================
@document_bp.route('/templates', methods=['GET'])
@roles_required(*HR_STAFF_ROLES)
def list_templates():
    db = SessionLocal()
    try:
        query = company_query(db, DocumentTemplate).filter(DocumentTemplate.is_active.is_(True))
        template_type = request.args.get('template_type')
        if template_type:
            query = query.filter(DocumentTemplate.template_type == template_type)
        templates = query.order_by(DocumentTemplate.created_at.desc(), DocumentTemplate.id.desc()).all()
        return jsonify({"templates": [_serialize_template(t) for t in templates]}), 200
    finally:
        db.close()


@document_bp.route('/templates/<int:template_id>', methods=['GET'])
@roles_required(*HR_STAFF_ROLES)
def get_template(template_id):
    db = SessionLocal()
    try:
        template = _active_template(db, template_id)
        if not template:
            return jsonify({"message": "Template not found"}), 404
        return jsonify({"template": _serialize_template(template)}), 200
    finally:
        db.close()


@document_bp.route('/templates', methods=['POST'])
@roles_required(*HR_STAFF_ROLES)
def create_template():
    data = request.get_json(silent=True) or {}

    is_valid, error_msg = validate_required_fields(data, ['document_name', 'content', 'field_tags'])
    if not is_valid:
        return jsonify({"message": error_msg}), 400

    is_valid, error_msg = DocumentService.validate_field_tags(data.get('field_tags'))
    if not is_valid:
        return jsonify({"message": error_msg}), 400

    db = SessionLocal()
    try:
        template = DocumentTemplate(
            company_id=current_company_id(),
            document_name=sanitize_input(data['document_name']),
            description=sanitize_input(data.get('description')) or None,
            template_type=sanitize_input(data.get('template_type')) or 'general',
            field_tags=DocumentService.clean_field_tags(data['field_tags']),
            content=data['content'],
            created_by=request.current_user_id
        )
        db.add(template)
        db.commit()
        db.refresh(template)
        return jsonify({
            "message": "Template created successfully",
            "template": _serialize_template(template)
        }), 201
    except Exception:
        db.rollback()
        logger.exception("Error creating document template")
        return jsonify({"message": "Failed to create template"}), 500
    finally:
        db.close()


@document_bp.route('/templates/<int:template_id>', methods=['PUT'])
@roles_required(*HR_STAFF_ROLES)
def update_template(template_id):
    data = request.get_json(silent=True) or {}

    if 'field_tags' in data:
        is_valid, error_msg = DocumentService.validate_field_tags(data.get('field_tags'))
        if not is_valid:
            return jsonify({"message": error_msg}), 400
    if 'document_name' in data and not sanitize_input(data.get('document_name')):
        return jsonify({"message": "Document name is required"}), 400
    if 'content' in data and not sanitize_input(data.get('content')):
        return jsonify({"message": "Template content is required"}), 400

    db = SessionLocal()
    try:
        template = _active_template(db, template_id)
        if not template:
            return jsonify({"message": "Template not found"}), 404

        if 'document_name' in data:
            template.document_name = sanitize_input(data['document_name'])
        if 'description' in data:
            template.description = sanitize_input(data.get('description')) or None
        if 'template_type' in data:
            template.template_type = sanitize_input(data.get('template_type')) or 'general'
        if 'field_tags' in data:
            template.field_tags = DocumentService.clean_field_tags(data['field_tags'])
        if 'content' in data:
            template.content = data['content']

        db.commit()
        db.refresh(template)
        return jsonify({
            "message": "Template updated successfully",
            "template": _serialize_template(template)
        }), 200
    except Exception:
        db.rollback()
        logger.exception(f"Error updating document template {template_id}")
        return jsonify({"message": "Failed to update template"}), 500
    finally:
        db.close()


@document_bp.route('/templates/<int:template_id>', methods=['DELETE'])
@roles_required(*HR_STAFF_ROLES)
def delete_template(template_id):
    db = SessionLocal()
    try:
        template = _active_template(db, template_id)
        if not template:
            return jsonify({"message": "Template not found"}), 404
        template.is_active = False
        db.commit()
        return jsonify({"message": "Template deleted successfully"}), 200
    except Exception:
        db.rollback()
        logger.exception(f"Error deleting document template {template_id}")
        return jsonify({"message": "Failed to delete template"}), 500
    finally:
        db.close()


# ============================================================
# GENERATION
# ============================================================
@document_bp.route('/generate', methods=['POST'])
@roles_required(*HR_STAFF_ROLES)
def generate_document():
    """Render a template with field values and store the result"""
    data = request.get_json(silent=True) or {}

    is_valid, error_msg = validate_required_fields(data, ['template_id'])
    if not is_valid:
        return jsonify({"message": error_msg}), 400

    field_values = data.get('field_values') or {}
    if not isinstance(field_values, dict):
        return jsonify({"message": "field_values must be an object"}), 400

    db = SessionLocal()
    try:
        template = _active_template(db, data['template_id'])
        if not template:
            return jsonify({"message": "Template not found"}), 404

        defaults = {}
        employee_id = data.get('employee_id')
        if employee_id:
            employee = get_company_record(db, User, employee_id)
            if not employee:
                return jsonify({"message": "Employee not found"}), 404
            company = db.query(Company).filter(Company.id == current_company_id()).first()
            defaults = DocumentService.employee_values(employee, employee.employee_profile, company)

        content = DocumentService.render(template.content, template.field_tags, field_values, defaults)
        document = GeneratedDocument(
            company_id=current_company_id(),
            template_id=template.id,
            employee_id=employee_id or None,
            document_name=sanitize_input(data.get('document_name')) or template.document_name,
            content=content,
            field_values=field_values,
            generated_by=request.current_user_id
        )
        db.add(document)
        db.commit()
        db.refresh(document)
        return jsonify({
            "message": "Document generated successfully",
            "document": _serialize_generated(document)
        }), 201
    except Exception:
        db.rollback()
        logger.exception("Error generating document")
        return jsonify({"message": "Failed to generate document"}), 500
    finally:
        db.close()


@document_bp.route('/generated', methods=['GET'])
@roles_required(*HR_STAFF_ROLES)
def list_generated():
    db = SessionLocal()
    try:
        query = company_query(db, GeneratedDocument)
        employee_id = request.args.get('employee_id', type=int)
        if employee_id:
            query = query.filter(GeneratedDocument.employee_id == employee_id)
        documents = query.order_by(GeneratedDocument.created_at.desc(), GeneratedDocument.id.desc()).all()
        return jsonify({"documents": [_serialize_generated(d, include_content=False) for d in documents]}), 200
    finally:
        db.close()


@document_bp.route('/generated/<int:document_id>', methods=['GET'])
@roles_required(*HR_STAFF_ROLES)
def get_generated(document_id):
    db = SessionLocal()
    try:
        document = get_company_record(db, GeneratedDocument, document_id)
        if not document:
            return jsonify({"message": "Document not found"}), 404
        return jsonify({"document": _serialize_generated(document)}), 200
    finally:
        db.close()
