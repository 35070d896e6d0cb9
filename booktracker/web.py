# booktracker/web.py
from flask import (Blueprint, render_template, request, redirect, url_for, flash, current_app, Response,
                   jsonify, abort)
from booktracker.covers import encode_data_url
from booktracker.models import (Book, BookQuery, Page, Ratings, SORT_FIELDS, SORT_DIRECTIONS,
                                WHICH_WITCH_OPTIONS, MONTH_NAMES)
from booktracker.pipeline import toggle_sort
from booktracker.ratings import RATING_CATEGORIES, RATING_GUIDE, convert_to_star_rating
from booktracker.repo import RepoError
from booktracker.service import BookService, ValidationError, NotFoundError, ConflictError, EXPORT_FIELDS
import csv, io, json, logging
from typing import Optional

logger = logging.getLogger(__name__)

bp = Blueprint("main", __name__, url_prefix="")  # blueprint name = 'main'

# url segment -> (kind, singular label)
TAXONOMY_PAGES = {"genres": ("genre", "Genre"), "series": ("series", "Series"), "authors": ("author", "Author")}

def register_routes(app, service: BookService):
    """
    Register blueprint and ensure SERVICE is in app.config.
    Call this once during app creation (run.create_app does this).
    """
    if "SERVICE" not in app.config:
        app.config["SERVICE"] = service
    app.register_blueprint(bp)
    app.jinja_env.globals.update(stars=convert_to_star_rating, month_names=MONTH_NAMES)
    logger.debug("Registered blueprint 'main' and injected SERVICE")

def register_error_handlers(app):
    """Centralized handlers for service exceptions."""
    @app.errorhandler(ValidationError)
    def handle_validation_error(e):
        logger.warning("ValidationError: %s", e)
        return render_template("error.html", message=str(e)), 400

    @app.errorhandler(NotFoundError)
    def handle_not_found(e):
        logger.info("NotFoundError: %s", e)
        return render_template("error.html", message=str(e)), 404

    @app.errorhandler(ConflictError)
    def handle_conflict(e):
        logger.info("ConflictError: %s", e)
        return render_template("error.html", message=str(e)), 409

    @app.errorhandler(RepoError)
    def handle_repo_error(e):
        logger.error("RepoError: %s", e)
        return render_template("error.html", message=f"Storage error: {e}"), 503

# helper to get service instance
def current_service() -> BookService:
    return current_app.config["SERVICE"]

def query_from_args(args) -> BookQuery:
    year_raw = (args.get("year") or "").strip()
    sort_field = args.get("sort", "date")
    sort_dir = args.get("dir", "desc")
    return BookQuery(
        search=(args.get("q") or "").strip(),
        genre=args.get("genre") or None,
        year=int(year_raw) if year_raw.isdigit() else None,
        which_witch=args.get("witch") or None,
        sort_field=sort_field if sort_field in SORT_FIELDS else "date",
        sort_direction=sort_dir if sort_dir in SORT_DIRECTIONS else "desc",
    )

def query_to_args(query: BookQuery) -> dict:
    args = {"sort": query.sort_field, "dir": query.sort_direction}
    if query.search:
        args["q"] = query.search
    if query.genre:
        args["genre"] = query.genre
    if query.year is not None:
        args["year"] = query.year
    if query.which_witch:
        args["witch"] = query.which_witch
    return args

def book_to_json(b: Book) -> dict:
    return {
        "id": b.id,
        "title": b.title,
        "author": b.author,
        "completionMonth": b.completion_month,
        "completionYear": b.completion_year,
        "completed": b.completion_label,
        "genres": b.genres,
        "coverImage": b.cover_image,
        "ratings": b.ratings.to_dict(),
        "overallRating": b.overall_rating,
        "stars": convert_to_star_rating(b.overall_rating),
        "whichWitch": b.which_witch,
        "isStandalone": b.is_standalone,
        "seriesName": b.series_name,
        "dateAdded": b.date_added,
        "version": b.version,
    }

# -----------------------
# Book list
# -----------------------
@bp.route("/")
def index():
    svc = current_service()
    query = query_from_args(request.args)
    try:
        page = svc.list_books(query, page=0)
    except RepoError as e:
        logger.error("Failed to load books: %s", e)
        flash("Could not load books from the store.", "danger")
        page = Page(items=[], total=0, page=0, page_size=svc.page_size)
    try:
        stats = svc.collection_stats()
        years = svc.available_years()
        genres = svc.list_genres()
    except RepoError as e:
        logger.error("Failed to load collection details: %s", e)
        stats, years, genres = {"total_books": 0, "books_this_year": 0}, [], []
    sort_links = {f: query_to_args(toggle_sort(query, f)) for f in SORT_FIELDS}
    return render_template("index.html", page=page, query=query, query_args=query_to_args(query),
                           stats=stats, years=years, genres=genres, witches=WHICH_WITCH_OPTIONS,
                           sort_links=sort_links, configured=svc.is_configured())

@bp.route("/api/books")
def api_books():
    svc = current_service()
    query = query_from_args(request.args)
    page_raw = request.args.get("page", "0")
    page_no = int(page_raw) if page_raw.isdigit() else 0
    try:
        page = svc.list_books(query, page=page_no)
    except RepoError as e:
        logger.error("api_books page %s failed: %s", page_no, e)
        return jsonify({"error": str(e)}), 503
    return jsonify({
        "items": [book_to_json(b) for b in page.items],
        "page": page.page,
        "total": page.total,
        "has_more": page.has_more,
    })

@bp.route("/api/status")
def api_status():
    svc = current_service()
    return jsonify({"configured": svc.is_configured(), "connected": svc.connection_status()})

@bp.route("/covers/<path:path>")
def cover(path: str):
    data, mime = current_service().read_cover(path)
    return Response(data, mimetype=mime)

# -----------------------
# Books
# -----------------------
def _int_field(name: str, label: str) -> int:
    raw = (request.form.get(name) or "").strip()
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{label} must be a number")

def _ratings_from_form() -> Ratings:
    values = {}
    for attr, key in Ratings.KEYS:
        raw = (request.form.get(key) or "").strip()
        if raw in ("", "na", "N/A"):
            values[key] = None
        elif raw.isdigit():
            values[key] = int(raw)
        else:
            raise ValidationError(f"rating for {key} must be a number or N/A")
    return Ratings.from_dict(values)

def _cover_from_form() -> Optional[str]:
    """None keeps the current cover, '' removes it."""
    if request.form.get("remove_cover") == "1":
        return ""
    file = request.files.get("cover")
    if file and file.filename:
        data = file.read()
        if data:
            return encode_data_url(data, file.mimetype or "image/jpeg")
    url = (request.form.get("cover_url") or "").strip()
    return url or None

def _book_form_data() -> dict:
    genres = request.form.getlist("genres")
    extra = (request.form.get("new_genres") or "").strip()
    if extra:
        genres += [g.strip() for g in extra.split(",")]
    return {
        "title": request.form.get("title", ""),
        "author": request.form.get("author", ""),
        "completion_month": _int_field("completion_month", "completion month"),
        "completion_year": _int_field("completion_year", "completion year"),
        "genres": genres,
        "ratings": _ratings_from_form(),
        "which_witch": request.form.get("which_witch") or None,
        "is_standalone": request.form.get("is_standalone", "1") == "1",
        "series_name": request.form.get("series_name"),
        "cover_image": _cover_from_form(),
    }

def _form_context(svc: BookService, book: Optional[Book]):
    try:
        genres, series, authors = svc.list_genres(), svc.list_series(), svc.list_authors()
    except RepoError as e:
        logger.error("Failed to load taxonomy for form: %s", e)
        genres, series, authors = [], [], []
    return dict(book=book, genres=genres, series=series, authors=authors, witches=WHICH_WITCH_OPTIONS,
                categories=list(zip(RATING_CATEGORIES, [key for _, key in Ratings.KEYS])), guide=RATING_GUIDE)

@bp.route("/books/new", methods=["GET", "POST"])
def book_new():
    svc = current_service()
    if request.method == "POST":
        try:
            book = svc.create_book(**_book_form_data())
            flash(f"Book added: {book.title}", "success")
            return redirect(url_for("main.index"))
        except ValidationError as e:
            flash(str(e), "danger")
        except RepoError as e:
            logger.error("book_new failed: %s", e)
            flash(f"Failed to save book: {e}", "danger")
    return render_template("book_form.html", **_form_context(svc, None))

@bp.route("/books/<book_id>/edit", methods=["GET", "POST"])
def book_edit(book_id: str):
    svc = current_service()
    try:
        b = svc.get_book(book_id)
    except NotFoundError:
        flash("Book not found", "danger")
        return redirect(url_for("main.index"))
    if request.method == "POST":
        try:
            version_raw = request.form.get("version", "")
            expected = int(version_raw) if version_raw.isdigit() else None
            svc.update_book(book_id, expected_version=expected, **_book_form_data())
            flash("Book updated", "success")
            return redirect(url_for("main.index"))
        except ValidationError as e:
            flash(str(e), "danger")
        except ConflictError as e:
            flash(str(e), "warning")
            # show what is stored now
            b = svc.get_book(book_id)
        except RepoError as e:
            logger.error("book_edit failed: %s", e)
            flash(f"Failed to update book: {e}", "danger")
    return render_template("book_form.html", **_form_context(svc, b))

@bp.route("/books/<book_id>/delete", methods=["POST"])
def book_delete(book_id: str):
    svc = current_service()
    try:
        svc.delete_book(book_id)
        flash("Book deleted", "info")
    except RepoError as e:
        logger.error("book_delete failed: %s", e)
        flash(f"Failed to delete book: {e}", "danger")
    return redirect(url_for("main.index"))

# -----------------------
# Genres / Series / Authors
# -----------------------
def _taxonomy(section: str):
    if section not in TAXONOMY_PAGES:
        abort(404)
    return TAXONOMY_PAGES[section]

@bp.route("/<any(genres, series, authors):section>")
def taxonomy_list(section: str):
    svc = current_service()
    kind, label = _taxonomy(section)
    try:
        items = getattr(svc, f"list_{section}")()
    except RepoError as e:
        logger.error("Failed to list %s: %s", section, e)
        flash(f"Could not load {section}.", "danger")
        items = []
    return render_template("taxonomy_list.html", items=items, section=section, label=label)

@bp.route("/<any(genres, series, authors):section>/new", methods=["GET", "POST"])
def taxonomy_new(section: str):
    svc = current_service()
    kind, label = _taxonomy(section)
    if request.method == "POST":
        try:
            getattr(svc, f"create_{kind}")(request.form.get("name", ""))
            flash(f"{label} created", "success")
            return redirect(url_for("main.taxonomy_list", section=section))
        except ValidationError as e:
            flash(str(e), "danger")
        except RepoError as e:
            flash(f"Failed to save {kind}: {e}", "danger")
    return render_template("taxonomy_form.html", item=None, section=section, label=label)

@bp.route("/<any(genres, series, authors):section>/<item_id>/edit", methods=["GET", "POST"])
def taxonomy_edit(section: str, item_id: str):
    svc = current_service()
    kind, label = _taxonomy(section)
    try:
        item = getattr(svc, f"get_{kind}")(item_id)
    except NotFoundError:
        flash(f"{label} not found", "danger")
        return redirect(url_for("main.taxonomy_list", section=section))
    if request.method == "POST":
        try:
            result = getattr(svc, f"rename_{kind}")(item_id, request.form.get("name", ""))
            flash(f"{label} renamed; {len(result.updated)} book(s) updated", "success")
            return redirect(url_for("main.taxonomy_list", section=section))
        except ValidationError as e:
            flash(str(e), "danger")
        except RepoError as e:
            flash(f"Failed to rename {kind}: {e}", "danger")
    return render_template("taxonomy_form.html", item=item, section=section, label=label)

@bp.route("/<any(genres, series, authors):section>/<item_id>/delete", methods=["POST"])
def taxonomy_delete(section: str, item_id: str):
    svc = current_service()
    kind, label = _taxonomy(section)
    try:
        getattr(svc, f"delete_{kind}")(item_id)
        flash(f"{label} deleted", "info")
    except RepoError as e:
        flash(f"Failed to delete {kind}: {e}", "danger")
    return redirect(url_for("main.taxonomy_list", section=section))

# -----------------------
# Export
# -----------------------
@bp.route("/books/export")
def export_books():
    svc = current_service()
    fmt = request.args.get("format", "csv").lower()
    rows = svc.export_books(query_from_args(request.args))
    if fmt == "json":
        return Response(json.dumps(rows, ensure_ascii=False), mimetype="application/json")
    # CSV
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=EXPORT_FIELDS)
    writer.writeheader()
    for r in rows:
        writer.writerow(dict(r, genres="; ".join(r["genres"])))
    csv_bytes = output.getvalue().encode("utf-8")
    return Response(csv_bytes, mimetype="text/csv", headers={"Content-Disposition": "attachment; filename=books.csv"})
